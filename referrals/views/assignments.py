"""
Doctor assignment views.

Doctors read their own assignments; administrators manage everyone's,
either one row at a time or by replacing a doctor's whole set.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ..identity import require_caller
from ..models import DoctorDepartment, DoctorHospital
from ..permissions import HasProfile, IsAdminRole
from ..policy import engine
from ..serializers.assignments import (
    AssignmentReplaceSerializer,
    DepartmentAssignmentSerializer,
    HospitalAssignmentSerializer,
)
from ..services.assignments import assign_department, assign_hospital, replace_assignments
from ..services.records import delete_record
from .common import ok


def serialize_hospital_assignment(a: DoctorHospital) -> dict:
    return {
        'id': a.id,
        'doctorId': a.doctor_id,
        'hospitalId': a.hospital_id,
        'createdAt': a.created_at,
    }


def serialize_department_assignment(a: DoctorDepartment) -> dict:
    return {
        'id': a.id,
        'doctorId': a.doctor_id,
        'departmentId': a.department_id,
        'hospitalId': a.hospital_id,
        'createdAt': a.created_at,
    }


def _doctor_filter(request, qs):
    doctor_id = request.query_params.get('doctorId')
    if doctor_id:
        qs = qs.filter(doctor_id=doctor_id)
    return qs


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasProfile])
def hospital_assignments(request):
    caller = require_caller(request)
    if request.method == 'GET':
        qs = _doctor_filter(request, engine.scope(caller, DoctorHospital)).order_by('created_at')
        return ok([serialize_hospital_assignment(a) for a in qs])
    s = HospitalAssignmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    row = assign_hospital(caller, vd['doctor'].pk, vd['hospital'].pk)
    return ok(serialize_hospital_assignment(row), status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, HasProfile])
def hospital_assignment_detail(request, pk):
    caller = require_caller(request)
    delete_record(caller, DoctorHospital, pk)
    return ok(None)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasProfile])
def department_assignments(request):
    caller = require_caller(request)
    if request.method == 'GET':
        qs = _doctor_filter(request, engine.scope(caller, DoctorDepartment)).order_by('created_at')
        return ok([serialize_department_assignment(a) for a in qs])
    s = DepartmentAssignmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    hospital = vd.get('hospital')
    row = assign_department(caller, vd['doctor'].pk, vd['department'].pk, hospital.pk if hospital else None)
    return ok(serialize_department_assignment(row), status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, HasProfile])
def department_assignment_detail(request, pk):
    caller = require_caller(request)
    delete_record(caller, DoctorDepartment, pk)
    return ok(None)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsAdminRole])
def doctor_assignments(request, pk):
    """Replace every hospital and department assignment of one doctor."""
    caller = require_caller(request)
    s = AssignmentReplaceSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    hospitals, departments = replace_assignments(
        caller, pk,
        hospital_ids=s.validated_data['hospitalIds'],
        department_ids=s.validated_data['departmentIds'],
    )
    return ok({
        'hospitals': [serialize_hospital_assignment(a) for a in hospitals],
        'departments': [serialize_department_assignment(a) for a in departments],
    })
