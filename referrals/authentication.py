"""
Token authentication classes.

Clients authenticate either with a simplejwt bearer token or with a
legacy DRF token sent as ``Authorization: Token <key>``.  Keeping the
classes in their own module avoids circular imports when DRF loads
authentication classes during start-up.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """Legacy token authentication using the ``Token`` keyword."""

    keyword = 'Token'
