"""
Doctor to hospital/department assignments.
"""
from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import transaction

from referrals.identity import Caller
from referrals.models import (
    Department, DoctorDepartment, DoctorHospital, Hospital, Profile, ROLE_DOCTOR, ROLE_SPECIALIST,
)
from referrals.policy import engine
from referrals.services.audit import log_action
from referrals.services.records import create_record


def _ensure_doctor(doctor_id) -> None:
    role = Profile.objects.filter(pk=doctor_id).values_list('role', flat=True).first()
    if role is None:
        raise ValidationError({'doctor': 'unknown profile'})
    if role not in (ROLE_DOCTOR, ROLE_SPECIALIST):
        raise ValidationError({'doctor': 'only doctors and specialists can be assigned'})


def _ensure_exist(model, ids, field: str) -> None:
    missing = set(ids) - set(model.objects.filter(pk__in=ids).values_list('pk', flat=True))
    if missing:
        raise ValidationError({field: f"unknown ids: {', '.join(sorted(str(m) for m in missing))}"})


def assign_hospital(caller: Caller, doctor_id, hospital_id) -> DoctorHospital:
    _ensure_doctor(doctor_id)
    return create_record(caller, DoctorHospital(doctor_id=doctor_id, hospital_id=hospital_id))


def assign_department(caller: Caller, doctor_id, department_id, hospital_id=None) -> DoctorDepartment:
    """Assign a department; the hospital defaults to the department's own."""
    _ensure_doctor(doctor_id)
    if hospital_id is None:
        hospital_id = Department.objects.filter(pk=department_id).values_list('hospital_id', flat=True).first()
    return create_record(
        caller, DoctorDepartment(doctor_id=doctor_id, department_id=department_id, hospital_id=hospital_id)
    )


def replace_assignments(caller: Caller, doctor_id, *, hospital_ids, department_ids):
    """Swap a doctor's whole assignment set in one transaction."""
    _ensure_doctor(doctor_id)
    hospital_ids = list(dict.fromkeys(hospital_ids))
    department_ids = list(dict.fromkeys(department_ids))
    _ensure_exist(Hospital, hospital_ids, 'hospitalIds')
    _ensure_exist(Department, department_ids, 'departmentIds')
    with transaction.atomic():
        for model in (DoctorDepartment, DoctorHospital):
            for row in engine.scope(caller, model).filter(doctor_id=doctor_id):
                engine.authorize_delete(caller, row)
                row.delete()
        hospitals = [assign_hospital(caller, doctor_id, hid) for hid in hospital_ids]
        departments = [assign_department(caller, doctor_id, did) for did in department_ids]
        log_action(user=caller, action='assignments.replace', object_type='profiles', object_id=doctor_id,
                   detail={'hospitals': [str(h) for h in hospital_ids],
                           'departments': [str(d) for d in department_ids]})
    return hospitals, departments
