"""
Project-level Channels routing.

Keeping routing in the Django project package ensures `board_server.asgi` can import it.
"""

from board_server.realtime.apps import get_registry
from board_server.realtime.routing import build_websocket_urlpatterns


def websocket_urlpatterns() -> list:
    return build_websocket_urlpatterns(get_registry())
