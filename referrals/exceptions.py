from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response

from .policy import PolicyViolation


def _error(code, message, status):
    return Response({'ok': False, 'error': {'code': code, 'message': message}}, status=status)


def api_exception_handler(exc, context):
    # PolicyViolation is an IntegrityError, so it has to be matched first
    if isinstance(exc, PolicyViolation):
        return _error('policy_violation', str(exc), 403)
    if isinstance(exc, IntegrityError):
        return _error('integrity_error', str(exc), 400)
    if isinstance(exc, DjangoValidationError):
        message = exc.message_dict if hasattr(exc, 'error_dict') else exc.messages
        return _error('validation_error', message, 400)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        return _error('server_error', str(exc), 500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    return _error('api_error', detail, resp.status_code)
