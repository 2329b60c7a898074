"""
Public referral tracking.

:func:`get_referral_public` is the one read path that skips the policy
engine: it runs for anonymous callers and reads through the unscoped
manager.  It performs no authorization check of its own.  What keeps it
safe is the fixed projection below, so any change to
``PUBLIC_REFERRAL_PROJECTION`` is a security change and must be reviewed
as one.  ``specialist_notes``, patient medical history and contact
details are intentionally absent.
"""
from __future__ import annotations

from .models import Referral

# output column -> ORM lookup path
PUBLIC_REFERRAL_PROJECTION = (
    ('referral_id', 'referral_id'),
    ('status', 'status'),
    ('urgency', 'urgency'),
    ('reason', 'reason'),
    ('notes', 'notes'),
    ('appointment_date', 'appointment_date'),
    ('created_at', 'created_at'),
    ('patient_full_name', 'patient__full_name'),
    ('patient_id', 'patient__patient_id'),
    ('referring_doctor_name', 'referring_doctor__full_name'),
    ('target_specialist_name', 'target_specialist__full_name'),
    ('origin_hospital_name', 'origin_hospital__name'),
    ('origin_hospital_city', 'origin_hospital__city'),
    ('origin_hospital_state', 'origin_hospital__state'),
    ('target_hospital_name', 'target_hospital__name'),
    ('target_hospital_city', 'target_hospital__city'),
    ('target_hospital_state', 'target_hospital__state'),
    ('target_department_name', 'target_department__name'),
    ('target_department_description', 'target_department__description'),
)

PUBLIC_REFERRAL_FIELDS = tuple(name for name, _ in PUBLIC_REFERRAL_PROJECTION)


def get_referral_public(referral_id: str) -> list[dict]:
    """Return zero or one projected rows for ``referral_id``.

    The identifier is matched case-insensitively by upper-casing it, the
    same way identifiers are stored.  An unknown identifier yields an
    empty list, so a wrong id and a hidden one look the same.
    """
    needle = (referral_id or '').strip().upper()
    if not needle:
        return []
    paths = [path for _, path in PUBLIC_REFERRAL_PROJECTION]
    rows = Referral._base_manager.filter(referral_id=needle).values(*paths)[:1]
    return [{name: row[path] for name, path in PUBLIC_REFERRAL_PROJECTION} for row in rows]
