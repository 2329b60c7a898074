"""
Referral workflow.

Creating a referral, moving it through its statuses and listing the
referrals a caller can see.  Authorization is entirely the policy
engine's job; this module adds the workflow rules on top: defaults
taken from the caller, the status transition graph, the status history
and the refresh broadcast.
"""
from __future__ import annotations

import logging
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from referrals.identity import Caller
from referrals.models import DoctorHospital, Referral, ReferralTransition
from referrals.policy import engine
from referrals.services.patients import create_patient
from referrals.services.realtime import broadcast_referral_update, referral_audience
from referrals.services.records import create_record, update_record

logger = logging.getLogger(__name__)

SCOPE_CREATED = 'created'
SCOPE_ASSIGNED = 'assigned'
SCOPE_INCOMING = 'incoming'
SCOPES = (SCOPE_CREATED, SCOPE_ASSIGNED, SCOPE_INCOMING)


def _announce(referral: Referral) -> None:
    groups = referral_audience(referral)
    payload = {'id': str(referral.pk), 'referralId': referral.referral_id, 'status': referral.status}
    transaction.on_commit(lambda: broadcast_referral_update(groups, payload))


def create_referral(caller: Caller, data: dict, *, patient_data: Optional[dict] = None) -> Referral:
    """Create a referral, optionally together with a new patient.

    ``referring_doctor_id`` defaults to the caller and
    ``origin_hospital_id`` to the caller's home hospital.  Supplying
    another doctor as the referrer is rejected by the policy.
    """
    data = dict(data)
    if 'referring_doctor' not in data:
        data.setdefault('referring_doctor_id', caller.profile_id)
    if 'origin_hospital' not in data and not data.get('origin_hospital_id'):
        if caller.hospital_id is None:
            raise ValidationError({'origin_hospital': 'origin hospital is required'})
        data['origin_hospital_id'] = caller.hospital_id
    with transaction.atomic():
        if patient_data is not None:
            data['patient'] = create_patient(caller, patient_data)
        referral = Referral(**data)
        referral.status = Referral.STATUS_PENDING
        create_record(caller, referral)
        ReferralTransition.objects.create(
            referral=referral, from_status=None, to_status=referral.status, operator_id=caller.profile_id
        )
        _announce(referral)
    logger.info("referral %s created by %s", referral.referral_id, caller.profile_id)
    return referral


def update_referral(caller: Caller, pk, changes: dict) -> Referral:
    """Update status, notes, appointment or assignee of a referral.

    The status change, the appointment stamp and the history row are
    written in one transaction.
    """

    def prepare(referral: Referral, changes: dict) -> dict:
        new_status = changes.get('status')
        if new_status is None or new_status == referral.status:
            return changes
        if not referral.can_transition(new_status):
            raise ValidationError({'status': f'cannot move a {referral.status} referral to {new_status}'})
        if new_status == Referral.STATUS_COMPLETED and not changes.get('appointment_date') \
                and referral.appointment_date is None:
            changes['appointment_date'] = timezone.now()
        return changes

    def after(referral: Referral, previous: dict) -> None:
        if 'status' not in previous:
            return
        ReferralTransition.objects.create(
            referral=referral,
            from_status=previous['status'],
            to_status=referral.status,
            operator_id=caller.profile_id,
        )
        _announce(referral)

    return update_record(caller, Referral, pk, changes, prepare=prepare, after=after)


def list_referrals(caller: Caller, *, scope: Optional[str] = None, status: Optional[str] = None,
                   urgency: Optional[str] = None):
    qs = engine.scope(caller, Referral).select_related(
        'patient', 'referring_doctor', 'target_specialist',
        'origin_hospital', 'target_hospital', 'target_department',
    )
    if scope == SCOPE_CREATED:
        qs = qs.filter(referring_doctor_id=caller.profile_id)
    elif scope == SCOPE_ASSIGNED:
        qs = qs.filter(target_specialist_id=caller.profile_id)
    elif scope == SCOPE_INCOMING:
        hospital_ids = set(
            engine.scope(caller, DoctorHospital)
            .filter(doctor_id=caller.profile_id)
            .values_list('hospital_id', flat=True)
        )
        if caller.hospital_id is not None:
            hospital_ids.add(caller.hospital_id)
        qs = qs.filter(target_hospital_id__in=hospital_ids)
    if status:
        qs = qs.filter(status=status)
    if urgency:
        qs = qs.filter(urgency=urgency)
    return qs.order_by('-created_at')
