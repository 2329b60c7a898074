"""
Anonymous referral tracking.

Patients follow their referral with nothing but its business id, so
this endpoint needs no credentials.  It is rate limited per client
(``referral_track`` throttle scope) to make id enumeration slow.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, authentication_classes, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny
from rest_framework.throttling import ScopedRateThrottle

from ..gateway import get_referral_public
from .common import ok


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([ScopedRateThrottle])
def track_referral(request, referral_id):
    return ok(get_referral_public(referral_id))

# ScopedRateThrottle reads the scope from the generated view class
track_referral.cls.throttle_scope = 'referral_track'
