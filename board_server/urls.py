"""
URL configuration for the board sync service.

WebSocket routes live in board_server/routing.py; these are the HTTP ones.
"""
from django.urls import path

from board_server.realtime.views import execute_code, session_state
from .health import health

urlpatterns = [
    path("health/", health),
    # Read-only snapshot of a session's board
    path("session-state/<str:session_id>/", session_state),
    # Path used by the original web client
    path("api/session/<str:session_id>/", session_state),
    # Code runner proxy for the editor panel; never touches session state
    path("api/execute/", execute_code),
]
