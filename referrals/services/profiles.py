"""
Identity registration and profile maintenance.

New identities always get their profile through the identity-creation
signal; the functions here only decide what metadata that signal sees
and who is allowed to trigger it.
"""
from __future__ import annotations

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.db import transaction

from referrals.identity import Caller
from referrals.models import Profile, ROLE_PATIENT
from referrals.policy import engine
from referrals.services.audit import log_action
from referrals.services.records import update_record

User = get_user_model()


def register_identity(*, username: str, password: str, email: str = '', metadata: dict | None = None):
    """Create an identity; its profile is created from ``metadata``."""
    validate_password(password)
    user = User(username=username, email=email or '')
    user.set_password(password)
    user.profile_metadata = dict(metadata or {})
    with transaction.atomic():
        user.save()
        log_action(user=user, action='signup', object_type='profiles', object_id=user.pk,
                   detail={'role': user.profile.role})
    return user


def create_profile_as_admin(caller: Caller, *, username: str, password: str, email: str = '',
                            metadata: dict | None = None):
    """Create an identity plus profile on behalf of an administrator."""
    metadata = dict(metadata or {})
    candidate = Profile(
        role=metadata.get('role') or ROLE_PATIENT,
        hospital_id=metadata.get('hospital_id'),
        department_id=metadata.get('department_id'),
    )
    with transaction.atomic():
        engine.authorize_insert(caller, candidate)
        user = register_identity(username=username, password=password, email=email, metadata=metadata)
        log_action(user=caller, action='profiles.create', object_type='profiles', object_id=user.pk,
                   detail={'role': user.profile.role})
    return user.profile


def update_profile(caller: Caller, pk, changes: dict) -> Profile:
    return update_record(caller, Profile, pk, changes)


def list_profiles(caller: Caller, *, role=None, hospital_id=None):
    qs = engine.scope(caller, Profile).select_related('hospital', 'department')
    if role:
        qs = qs.filter(role=role)
    if hospital_id:
        qs = qs.filter(hospital_id=hospital_id)
    return qs.order_by('full_name')
