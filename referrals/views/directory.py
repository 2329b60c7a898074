"""
Hospital and department endpoints.

Every authenticated caller may browse hospitals and departments.
Hospitals are maintained by administrators; departments by
administrators and doctors.  Signed-in identities without a profile
row may browse too.  All of these rules live in the policy table, so
these views only translate requests into service calls.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from ..identity import require_caller
from ..models import Department, Hospital
from ..policy import engine
from ..serializers.directory import DepartmentListQuerySerializer, DepartmentSerializer, HospitalSerializer
from ..services.records import create_record, delete_record, get_visible, update_record
from .common import ok


def serialize_hospital(h: Hospital) -> dict:
    return {
        'id': h.id,
        'name': h.name,
        'address': h.address,
        'city': h.city,
        'state': h.state,
        'phone': h.phone,
        'email': h.email,
        'createdAt': h.created_at,
        'updatedAt': h.updated_at,
    }


def serialize_department(d: Department) -> dict:
    return {
        'id': d.id,
        'name': d.name,
        'description': d.description,
        'hospitalId': d.hospital_id,
        'hospitalName': d.hospital.name if d.hospital_id else None,
        'headDoctorId': d.head_doctor_id,
        'createdAt': d.created_at,
        'updatedAt': d.updated_at,
    }


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def hospitals(request):
    caller = require_caller(request, allow_without_profile=True)
    if request.method == 'GET':
        return ok([serialize_hospital(h) for h in engine.scope(caller, Hospital).order_by('name')])
    s = HospitalSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    hospital = create_record(caller, Hospital(**s.validated_data))
    return ok(serialize_hospital(hospital), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def hospital_detail(request, pk):
    caller = require_caller(request, allow_without_profile=True)
    if request.method == 'GET':
        return ok(serialize_hospital(get_visible(caller, Hospital, pk)))
    if request.method == 'PATCH':
        s = HospitalSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        hospital = update_record(caller, Hospital, pk, s.validated_data)
        return ok(serialize_hospital(hospital))
    delete_record(caller, Hospital, pk)
    return ok(None, status=status.HTTP_200_OK)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def departments(request):
    caller = require_caller(request, allow_without_profile=True)
    if request.method == 'GET':
        q = DepartmentListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        qs = engine.scope(caller, Department).select_related('hospital')
        hospital_id = q.validated_data.get('hospitalId')
        if hospital_id:
            qs = qs.filter(hospital_id=hospital_id)
        return ok([serialize_department(d) for d in qs.order_by('name')])
    s = DepartmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    department = create_record(caller, Department(**s.validated_data))
    return ok(serialize_department(department), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def department_detail(request, pk):
    caller = require_caller(request, allow_without_profile=True)
    if request.method == 'GET':
        return ok(serialize_department(get_visible(caller, Department, pk)))
    if request.method == 'PATCH':
        s = DepartmentSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        department = update_record(caller, Department, pk, s.validated_data)
        return ok(serialize_department(department))
    delete_record(caller, Department, pk)
    return ok(None)
