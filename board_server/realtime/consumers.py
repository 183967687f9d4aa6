"""
WebSocket consumer for shared board sessions.

Key behavior:
- URL: /ws/board/<session_id>/ or /realtime/session/<session_id>/
- Any number of participants connect to the SAME session_id concurrently.
- {"type": "join"} returns the full snapshot to the joining socket only.
- {"type": "update"} is merged (last writer wins per field) and the original
  payload is fanned out to every other socket on the session, never the sender.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from channels.generic.websocket import AsyncWebsocketConsumer

from board_server.config import config

from .serializers import (
    Envelope,
    InvalidSessionId,
    MalformedMessage,
    UpdateEvent,
    extract_changes,
    join_guest_name,
    normalize_session_id,
    parse_envelope,
)
from .session_manager import Connection, Session, SessionRegistry

logger = logging.getLogger(__name__)


class BoardSessionConsumer(AsyncWebsocketConsumer):
    """
    One instance per socket.

    The registry is injected through as_asgi(registry=...).
    """

    registry: Optional[SessionRegistry] = None

    def __init__(self, *args: Any, registry: Optional[SessionRegistry] = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        if registry is not None:
            self.registry = registry
        self.session: Optional[Session] = None
        self.connection: Optional[Connection] = None

    async def connect(self) -> None:
        raw_session_id = self.scope.get("url_route", {}).get("kwargs", {}).get("session_id")
        try:
            session_id = normalize_session_id(raw_session_id, max_length=config.MAX_SESSION_ID_LENGTH)
        except InvalidSessionId as exc:
            logger.warning("Refusing board connection (path=%s): %s", self.scope.get("path"), exc)
            await self.close()
            return

        if self.registry is None:
            raise RuntimeError("BoardSessionConsumer requires a SessionRegistry (as_asgi(registry=...))")

        await self.accept()
        self.connection = Connection(channel_name=self.channel_name, session_id=session_id)
        self.session = await self.registry.attach(session_id, self.connection)

    async def disconnect(self, close_code: int) -> None:
        if self.connection is not None and self.registry is not None:
            await self.registry.detach(self.connection)

    async def receive(self, text_data: Optional[str] = None, bytes_data: Optional[bytes] = None) -> None:
        if not text_data or self.session is None or self.connection is None:
            return

        try:
            envelope = parse_envelope(text_data)
            if envelope.type == "join":
                await self._handle_join(envelope)
            else:
                await self._handle_update(envelope)
        except MalformedMessage as exc:
            logger.debug("Dropping malformed message on session %s: %s", self.session.session_id, exc)

    async def _handle_join(self, envelope: Envelope) -> None:
        snapshot = await self.session.join(self.connection, join_guest_name(envelope))
        await self.send_json(UpdateEvent(payload=snapshot).model_dump())

    async def _handle_update(self, envelope: Envelope) -> None:
        payload = envelope.payload or {}
        changes = extract_changes(payload)
        await self.session.apply_update(self.connection, changes, payload)

    async def board_update(self, event: Dict[str, Any]) -> None:
        """
        Handler for group fan-out.
        """
        if event.get("sender") == self.channel_name:
            return
        if self.connection is None or not self.connection.is_open:
            return
        await self.send_json(UpdateEvent(payload=event["payload"]).model_dump())

    async def send_json(self, payload: Dict[str, Any]) -> None:
        await self.send(text_data=json.dumps(payload, separators=(",", ":"), ensure_ascii=False))
