"""
ASGI config for the referral hub project.

Serves HTTP through Django and the ``/ws/updates/`` WebSocket through
Channels.  Sockets authenticate with a session or with a ``?token=``
query parameter.  Settings must be configured before any Django import.
"""
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "referral_hub.settings")

import django  # noqa: E402
django.setup()  # noqa: E402

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from django.core.asgi import get_asgi_application  # noqa: E402
from django.urls import path  # noqa: E402

from referrals.realtime.auth import TokenAuthMiddlewareStack  # noqa: E402
from referrals.realtime.consumers import UpdatesConsumer  # noqa: E402

django_asgi_app = get_asgi_application()

websocket_urlpatterns = [
    path("ws/updates/", UpdatesConsumer.as_asgi()),
]

application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": TokenAuthMiddlewareStack(URLRouter(websocket_urlpatterns)),
})
