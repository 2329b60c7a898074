"""
Patient registry views.

Doctors register and maintain patients at their home hospital;
administrators see everyone.  Patients themselves have no access to the
registry.  Search matches a name fragment or an exact business id.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ..identity import require_caller
from ..models import Patient
from ..permissions import HasProfile
from ..serializers.patients import PatientCreateSerializer, PatientListQuerySerializer, PatientSerializer
from ..services.patients import create_patient, list_patients
from ..services.records import delete_record, get_visible, update_record
from .common import ok, paginate


def serialize_patient(p: Patient) -> dict:
    return {
        'id': p.id,
        'patientId': p.patient_id,
        'fullName': p.full_name,
        'dateOfBirth': p.date_of_birth,
        'gender': p.gender,
        'phone': p.phone,
        'email': p.email,
        'address': p.address,
        'emergencyContactName': p.emergency_contact_name,
        'emergencyContactPhone': p.emergency_contact_phone,
        'medicalHistory': p.medical_history,
        'currentHospitalId': p.current_hospital_id,
        'createdAt': p.created_at,
        'updatedAt': p.updated_at,
    }


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasProfile])
def patients(request):
    caller = require_caller(request)
    if request.method == 'GET':
        q = PatientListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        qs = list_patients(caller, q=vd.get('q'), hospital_id=vd.get('hospitalId'))
        rows, pagination = paginate(qs, vd.get('page'), vd.get('pageSize'))
        return ok([serialize_patient(p) for p in rows], pagination=pagination)
    s = PatientCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    patient = create_patient(caller, s.validated_data)
    return ok(serialize_patient(patient), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasProfile])
def patient_detail(request, pk):
    caller = require_caller(request)
    if request.method == 'GET':
        return ok(serialize_patient(get_visible(caller, Patient, pk)))
    if request.method == 'PATCH':
        # patientId is not part of the update serializer: it never changes
        s = PatientSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        patient = update_record(caller, Patient, pk, s.validated_data)
        return ok(serialize_patient(patient))
    delete_record(caller, Patient, pk)
    return ok(None)
