from django.urls import re_path

from .consumers import BoardSessionConsumer
from .session_manager import SessionRegistry


def build_websocket_urlpatterns(registry: SessionRegistry) -> list:
    consumer = BoardSessionConsumer.as_asgi(registry=registry)
    return [
        # Path used by the web client
        re_path(r"^ws/board/(?P<session_id>[^/]+)/?$", consumer),
        re_path(r"^realtime/session/(?P<session_id>[^/]+)/?$", consumer),
    ]
