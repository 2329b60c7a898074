"""
Profile creation on identity creation.

Whenever a new identity is saved a matching :class:`Profile` row is
inserted with the same primary key.  Callers can pass sign-up metadata
by setting ``profile_metadata`` on the unsaved user instance; the role
defaults to ``patient`` when none is supplied.
"""
from __future__ import annotations

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Profile, ROLE_CHOICES, ROLE_PATIENT

_PROFILE_METADATA_FIELDS = (
    'full_name', 'phone', 'hospital_id', 'department_id', 'license_number', 'specialization',
)


@receiver(post_save, sender=settings.AUTH_USER_MODEL, dispatch_uid='referrals.create_profile')
def create_profile_for_new_identity(sender, instance, created, raw=False, **kwargs):
    if not created or raw:
        return
    meta = getattr(instance, 'profile_metadata', None) or {}
    role = meta.get('role') or ROLE_PATIENT
    if role not in dict(ROLE_CHOICES):
        raise ValueError(f'unknown role {role!r}')
    fields = {k: meta[k] for k in _PROFILE_METADATA_FIELDS if meta.get(k) is not None}
    fields.setdefault('full_name', instance.get_full_name() or '')
    Profile.objects.create(user=instance, email=instance.email or None, role=role, **fields)
