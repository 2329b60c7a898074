"""
WebSocket authentication with the API's own credentials.

Browsers cannot set an ``Authorization`` header on a WebSocket
handshake, so clients pass the access token from ``/api/auth/login`` in
the query string: ``/ws/updates/?token=<jwt access or legacy token>``.
A valid token replaces the session user resolved by Channels' own auth
middleware; an invalid one leaves the socket anonymous.
"""
from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.auth import AuthMiddlewareStack
from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser
from rest_framework.authtoken.models import Token
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError

logger = logging.getLogger(__name__)


def _user_for_jwt(raw: str):
    auth = JWTAuthentication()
    try:
        return auth.get_user(auth.get_validated_token(raw))
    except (InvalidToken, TokenError, AuthenticationFailed):
        return None


def _user_for_legacy_token(raw: str):
    token = Token.objects.select_related('user').filter(key=raw).first()
    if token is None or not token.user.is_active:
        return None
    return token.user


@database_sync_to_async
def user_for_token(raw: str):
    return _user_for_jwt(raw) or _user_for_legacy_token(raw)


class TokenAuthMiddleware(BaseMiddleware):
    """Sets ``scope['user']`` from a ``token`` query parameter."""

    async def __call__(self, scope, receive, send):
        params = parse_qs(scope.get('query_string', b'').decode('latin-1'))
        raw = (params.get('token') or [''])[0]
        if raw:
            scope = dict(scope)
            user = await user_for_token(raw)
            if user is None:
                logger.info("websocket token rejected for %s", scope.get('path'))
                user = AnonymousUser()
            scope['user'] = user
        return await super().__call__(scope, receive, send)


def TokenAuthMiddlewareStack(inner):
    return AuthMiddlewareStack(TokenAuthMiddleware(inner))
