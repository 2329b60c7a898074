from django.db.models import Count

from referrals.identity import Caller
from referrals.models import (
    Hospital, Patient, Profile, Referral,
    ROLE_ADMIN, ROLE_DOCTOR, ROLE_SPECIALIST,
)
from referrals.policy import engine


def _status_counts(qs) -> dict:
    counts = {status: 0 for status, _ in Referral.STATUS_CHOICES}
    for row in qs.values('status').annotate(n=Count('pk')):
        counts[row['status']] = row['n']
    return counts


def dashboard_stats(caller: Caller) -> dict:
    """Role-shaped counters, always computed over policy-scoped rows."""
    referrals = engine.scope(caller, Referral)
    if caller.role == ROLE_ADMIN:
        profiles = engine.scope(caller, Profile)
        return {
            'hospitalCount': engine.scope(caller, Hospital).count(),
            'doctorCount': profiles.filter(role=ROLE_DOCTOR).count(),
            'specialistCount': profiles.filter(role=ROLE_SPECIALIST).count(),
            'patientCount': engine.scope(caller, Patient).count(),
            'referralCount': referrals.count(),
            'pendingReferrals': referrals.filter(status=Referral.STATUS_PENDING).count(),
        }
    if caller.role == ROLE_DOCTOR:
        mine = _status_counts(referrals.filter(referring_doctor_id=caller.profile_id))
        return {
            'totalReferrals': sum(mine.values()),
            'pendingReferrals': mine[Referral.STATUS_PENDING],
            'completedReferrals': mine[Referral.STATUS_COMPLETED],
            'patientCount': engine.scope(caller, Patient).count(),
        }
    if caller.role == ROLE_SPECIALIST:
        incoming = _status_counts(referrals.exclude(referring_doctor_id=caller.profile_id))
        return {
            'totalReferrals': sum(incoming.values()),
            'pendingReferrals': incoming[Referral.STATUS_PENDING],
            'inProgressReferrals': incoming[Referral.STATUS_IN_PROGRESS],
            'completedReferrals': incoming[Referral.STATUS_COMPLETED],
        }
    return {}
