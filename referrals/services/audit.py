from typing import Optional, Any, Dict
from django.contrib.auth import get_user_model
from referrals.models import AuditEvent

User = get_user_model()


def log_action(*, user: Optional[Any], action: str, object_type: Optional[str] = None,
               object_id: Optional[Any] = None, detail: Optional[Dict[str, Any]] = None) -> AuditEvent:
    """Record an audit event.  ``user`` may be a user, a caller or ``None``."""
    user_id = getattr(user, 'profile_id', None) or getattr(user, 'pk', None)
    return AuditEvent.objects.create(
        user_id=user_id,
        action=action,
        object_type=object_type,
        object_id=str(object_id) if object_id is not None else None,
        detail=detail or {},
    )
