from django.db.models import Q

from referrals.identity import Caller
from referrals.models import Patient
from referrals.policy import engine
from referrals.services.records import create_record


def create_patient(caller: Caller, data: dict) -> Patient:
    """Register a patient; without an explicit hospital the caller's own is used."""
    data = dict(data)
    if 'current_hospital' not in data and 'current_hospital_id' not in data:
        data['current_hospital_id'] = caller.hospital_id
    patient = Patient(**data)
    return create_record(caller, patient)


def list_patients(caller: Caller, *, q=None, hospital_id=None):
    qs = engine.scope(caller, Patient).select_related('current_hospital')
    if q:
        qs = qs.filter(Q(full_name__icontains=q) | Q(patient_id__iexact=q.strip()))
    if hospital_id:
        qs = qs.filter(current_hospital_id=hospital_id)
    return qs.order_by('-created_at')
