"""
Referral views.

Listing, creation, detail (with status history) and updates.  The
creating doctor, the assigned specialist, specialists at the target
hospital and administrators see a referral; everybody else gets a 404.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ..identity import require_caller
from ..models import Referral
from ..permissions import HasProfile
from ..serializers.referrals import ReferralCreateSerializer, ReferralListQuerySerializer, ReferralUpdateSerializer
from ..services.records import get_visible
from ..services.referrals import create_referral, list_referrals, update_referral
from .common import ok, paginate


def _name(profile):
    return profile.full_name if profile is not None else None


def serialize_referral(r: Referral, with_history: bool = False) -> dict:
    data = {
        'id': r.id,
        'referralId': r.referral_id,
        'status': r.status,
        'urgency': r.urgency,
        'reason': r.reason,
        'notes': r.notes,
        'specialistNotes': r.specialist_notes,
        'appointmentDate': r.appointment_date,
        'patient': {
            'id': r.patient.id,
            'patientId': r.patient.patient_id,
            'fullName': r.patient.full_name,
        },
        'referringDoctorId': r.referring_doctor_id,
        'referringDoctorName': _name(r.referring_doctor),
        'targetSpecialistId': r.target_specialist_id,
        'targetSpecialistName': _name(r.target_specialist),
        'originHospitalId': r.origin_hospital_id,
        'originHospitalName': r.origin_hospital.name,
        'targetHospitalId': r.target_hospital_id,
        'targetHospitalName': r.target_hospital.name,
        'targetDepartmentId': r.target_department_id,
        'targetDepartmentName': r.target_department.name,
        'createdAt': r.created_at,
        'updatedAt': r.updated_at,
    }
    if with_history:
        data['history'] = [
            {
                'from': t.from_status,
                'to': t.to_status,
                'operatorId': t.operator_id,
                'timestamp': t.timestamp,
            }
            for t in r.transitions.order_by('timestamp', 'id')
        ]
    return data


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasProfile])
def referrals(request):
    caller = require_caller(request)
    if request.method == 'GET':
        q = ReferralListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        qs = list_referrals(caller, scope=vd.get('scope'), status=vd.get('status'), urgency=vd.get('urgency'))
        rows, pagination = paginate(qs, vd.get('page'), vd.get('pageSize'))
        return ok([serialize_referral(r) for r in rows], pagination=pagination)

    s = ReferralCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    data = dict(s.validated_data)
    patient_data = data.pop('new_patient', None)
    referral = create_referral(caller, data, patient_data=patient_data)
    return ok(serialize_referral(referral, with_history=True), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, HasProfile])
def referral_detail(request, pk):
    caller = require_caller(request)
    if request.method == 'GET':
        return ok(serialize_referral(get_visible(caller, Referral, pk), with_history=True))
    s = ReferralUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    referral = update_referral(caller, pk, s.validated_data)
    return ok(serialize_referral(referral, with_history=True))
