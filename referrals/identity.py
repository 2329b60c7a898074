"""
Caller identity and role resolution.

Every policy predicate needs the caller's role and home hospital.  They
are read here, once per request, with a single primary-key lookup on
``profiles`` through the unscoped model manager.  Policy rules receive
the resulting :class:`Caller` snapshot and must never look the role up
again through a policy-scoped queryset: a profiles rule that consulted
profiles under itself would recurse.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from rest_framework.exceptions import NotAuthenticated, PermissionDenied

from .models import Profile, ROLE_ADMIN

# Pseudo-role of a signed-in identity that has no profile row.
ROLE_AUTHENTICATED = 'authenticated'


@dataclass(frozen=True)
class Caller:
    profile_id: int
    role: str
    hospital_id: Optional[object] = None
    department_id: Optional[object] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def has_role(self, *roles: str) -> bool:
        return self.role in roles


def resolve_caller(user) -> Optional[Caller]:
    """Return the caller's profile snapshot, or ``None``.

    ``None`` covers both an anonymous request and an identity that has
    no profile row; :func:`require_caller` tells the two apart.
    """
    if user is None or not getattr(user, 'is_authenticated', False):
        return None
    row = (
        Profile.objects.filter(pk=user.pk)
        .values('role', 'hospital_id', 'department_id')
        .first()
    )
    if row is None:
        return None
    return Caller(profile_id=user.pk, **row)


def require_caller(request, *, allow_without_profile: bool = False) -> Caller:
    """Resolve the request's caller or raise 401/403.

    With ``allow_without_profile`` an authenticated identity lacking a
    profile row gets a :data:`ROLE_AUTHENTICATED` caller instead of a
    403; only the directory read rules admit that role.
    """
    user = getattr(request, 'user', None)
    if user is None or not getattr(user, 'is_authenticated', False):
        raise NotAuthenticated()
    caller = resolve_caller(user)
    if caller is None:
        if allow_without_profile:
            return Caller(profile_id=user.pk, role=ROLE_AUTHENTICATED)
        raise PermissionDenied('no profile for this identity')
    return caller
