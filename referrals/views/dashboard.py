from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ..identity import require_caller
from ..permissions import HasProfile
from ..services.dashboard import dashboard_stats
from .common import ok


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasProfile])
def dashboard(request):
    """Counters for the landing page, shaped by the caller's role."""
    caller = require_caller(request)
    return ok({'role': caller.role, **dashboard_stats(caller)})
