"""
Authentication views.

Login, self-service sign-up and the JWT refresh/logout pair.  The role
a caller acts with always comes from their profile row; nothing here
accepts a role for an existing identity.  Kept apart from
``referrals.authentication`` so DRF can load the authentication classes
without importing views.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from .models import Profile
from .serializers.auth import LoginSerializer, SignupSerializer
from .services.audit import log_action
from .services.profiles import register_identity

logger = logging.getLogger(__name__)


def _profile_payload(profile: Profile | None) -> dict | None:
    if profile is None:
        return None
    return {
        'id': profile.pk,
        'fullName': profile.full_name,
        'email': profile.email,
        'role': profile.role,
        'hospitalId': profile.hospital_id,
        'departmentId': profile.department_id,
    }


def _tokens_for(user) -> dict:
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return {
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
    }


# ---------------------------------------------------------------------
# Username/password login
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    username = s.validated_data['username']
    user = authenticate(request, username=username, password=s.validated_data['password'])
    ip = request.META.get('REMOTE_ADDR')
    if not user:
        log_action(user=None, action='login', object_type='user',
                   detail={'result': 'fail', 'username': username, 'ip': ip})
        return Response({'ok': False, 'error': {'code': 'invalid_credentials',
                                                'message': 'invalid username or password'}},
                        status=status.HTTP_400_BAD_REQUEST)

    log_action(user=user, action='login', object_type='user', object_id=user.pk,
               detail={'result': 'ok', 'ip': ip})
    profile = Profile.objects.filter(pk=user.pk).first()
    payload = {'ok': True, **_tokens_for(user), 'profile': _profile_payload(profile)}
    return Response(payload, status=status.HTTP_200_OK)

login_view.cls.throttle_scope = 'login'


# ---------------------------------------------------------------------
# Self-service sign-up
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def signup_view(request):
    s = SignupSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    metadata = {
        'role': vd['role'],
        'full_name': vd['full_name'],
        'phone': vd.get('phone') or None,
    }
    try:
        user = register_identity(
            username=vd['username'], password=vd['password'], email=vd.get('email', ''), metadata=metadata
        )
    except DjangoValidationError as e:
        # password validators
        raise ValidationError({'password': e.messages})
    logger.info("identity %s signed up as %s", user.pk, user.profile.role)
    payload = {'ok': True, **_tokens_for(user), 'profile': _profile_payload(user.profile)}
    return Response(payload, status=status.HTTP_201_CREATED)

signup_view.cls.throttle_scope = 'signup'


# ---------------------------------------------------------------------
# JWT: refresh & logout
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from a refresh token."""
    s = TokenRefreshSerializer(data={'refresh': request.data.get('refresh', '')})
    try:
        s.is_valid(raise_exception=True)
    except TokenError as e:
        return Response({'ok': False, 'error': {'code': 'token_invalid', 'message': str(e)}},
                        status=status.HTTP_401_UNAUTHORIZED)
    data = dict(s.validated_data)
    data['jwt_access'] = data.pop('access')
    if 'refresh' in data:
        data['jwt_refresh'] = data.pop('refresh')
    return Response({'ok': True, **data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist the caller's refresh tokens (a given one, or all of them)."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            token = RefreshToken(refresh)
        except TokenError as e:
            return Response({'ok': False, 'error': {'code': 'token_invalid', 'message': str(e)}},
                            status=status.HTTP_400_BAD_REQUEST)
        if str(token.get('user_id')) != str(request.user.pk):
            return Response({'ok': False, 'error': {'code': 'token_invalid',
                                                    'message': 'token belongs to another identity'}},
                            status=status.HTTP_400_BAD_REQUEST)
        token.blacklist()
        count = 1
    else:
        for outstanding in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=outstanding)
            count += int(created)
    log_action(user=request.user, action='logout', object_type='user', object_id=request.user.pk,
               detail={'blacklisted': count})
    return Response({'ok': True, 'blacklisted': count})
