"""
Endpoint-level permission classes.

These only gate whole endpoints by role; which rows a caller may see or
change is decided by :mod:`referrals.policy`.
"""
from rest_framework.permissions import BasePermission

from .identity import resolve_caller
from .models import ROLE_ADMIN


def _caller_role(request):
    caller = resolve_caller(getattr(request, "user", None))
    return caller.role if caller else None


class HasProfile(BasePermission):
    """The identity must be authenticated and have a profile row."""
    message = "no profile for this identity"

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _caller_role(request) is not None


class IsAdminRole(BasePermission):
    """Allow access only to profiles with the admin role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _caller_role(request) == ROLE_ADMIN
