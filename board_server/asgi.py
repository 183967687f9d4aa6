"""
ASGI config for the board sync service.

It exposes the ASGI callable as a module-level variable named ``application``.
Run with an ASGI server, e.g. ``daphne board_server.asgi:application``.
"""
# Load secrets (when BOARD_SECRET_NAME is set) before Django settings are loaded
import board_server.env_bootstrap  # noqa: F401

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "board_server.settings")

from channels.routing import ProtocolTypeRouter, URLRouter
from channels.security.websocket import AllowedHostsOriginValidator
from django.conf import settings
from django.core.asgi import get_asgi_application

# Standard Django ASGI application for HTTP. Also runs django.setup(), which
# builds the SessionRegistry in RealtimeConfig.ready().
django_asgi_app = get_asgi_application()

from board_server.routing import websocket_urlpatterns  # noqa: E402

# No AuthMiddlewareStack: participants are anonymous.
websocket_app = URLRouter(websocket_urlpatterns())
if not settings.DEBUG:
    websocket_app = AllowedHostsOriginValidator(websocket_app)

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": websocket_app,
    }
)
