import pytest
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator

from board_server.realtime.routing import build_websocket_urlpatterns
from board_server.realtime.session_manager import SessionRegistry


class RecordingLayer:
    """Channel layer double that records group traffic."""

    def __init__(self):
        self.groups = {}
        self.sent = []

    async def group_add(self, group, channel):
        self.groups.setdefault(group, set()).add(channel)

    async def group_discard(self, group, channel):
        self.groups.get(group, set()).discard(channel)

    async def group_send(self, group, message):
        self.sent.append((group, set(self.groups.get(group, set())), message))


@pytest.fixture
def recording_layer():
    return RecordingLayer()


@pytest.fixture
async def registry():
    reg = SessionRegistry()
    yield reg
    await reg.close()


@pytest.fixture
def ws_app(registry):
    return URLRouter(build_websocket_urlpatterns(registry))


@pytest.fixture
async def open_socket(ws_app):
    """Factory: open (and later close) a communicator for a session path."""
    opened = []

    async def _open(session_id, prefix="/ws/board"):
        communicator = WebsocketCommunicator(ws_app, f"{prefix}/{session_id}/")
        connected, _ = await communicator.connect()
        assert connected
        opened.append(communicator)
        return communicator

    yield _open

    for communicator in opened:
        if not communicator.future.done():
            await communicator.disconnect()
    await get_channel_layer().flush()

