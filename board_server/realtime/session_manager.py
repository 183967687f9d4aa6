"""
Board session lifecycle management.

- SessionRegistry maps session_id -> Session. One registry is built per process
  (RealtimeConfig.ready) and handed to consumers and views; nothing here is a
  module-level singleton.
- A Session owns its SessionState and the set of connections subscribed to it.
- Every read or write of one session goes through that session's lock. Sessions
  never share a lock.
- Fan-out rides on one Channels group per session.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from channels.layers import get_channel_layer

from .state import SessionState

logger = logging.getLogger(__name__)

# Channel layer event type; dispatched to BoardSessionConsumer.board_update.
UPDATE_EVENT = "board.update"


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    JOINED = "joined"
    CLOSED = "closed"


@dataclass(eq=False)
class Connection:
    """One participant's socket. Holds no board state; it is a fan-out target."""

    channel_name: str
    session_id: str
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    guest_name: Optional[str] = None
    state: ConnectionState = ConnectionState.CONNECTING
    connected_at: int = field(default_factory=lambda: int(time.time()))

    @property
    def is_open(self) -> bool:
        return self.state is not ConnectionState.CLOSED


def group_name_for(session_id: str) -> str:
    """
    Channels group names must be short ASCII. Hashing keeps distinct ids in
    distinct groups whatever their length or characters.
    """
    digest = hashlib.sha1(session_id.encode("utf-8")).hexdigest()
    return f"board.{digest}"


class Session:
    """Shared board state plus its subscribers."""

    def __init__(self, session_id: str, channel_layer: Any):
        self.session_id = session_id
        self.group_name = group_name_for(session_id)
        self.state = SessionState()
        self.connections: Dict[str, Connection] = {}
        self.idle_since: Optional[float] = time.monotonic()
        self._channel_layer = channel_layer
        self._lock = asyncio.Lock()

    async def add_connection(self, connection: Connection) -> None:
        async with self._lock:
            await self._channel_layer.group_add(self.group_name, connection.channel_name)
            self.connections[connection.connection_id] = connection
            self.idle_since = None

    async def remove_connection(self, connection: Connection) -> bool:
        # Flip state first so fan-out already queued for this socket is dropped.
        connection.state = ConnectionState.CLOSED
        async with self._lock:
            removed = self.connections.pop(connection.connection_id, None) is not None
            if removed:
                await self._channel_layer.group_discard(self.group_name, connection.channel_name)
            if not self.connections and self.idle_since is None:
                self.idle_since = time.monotonic()
            return removed

    async def join(self, connection: Connection, guest_name: Optional[str]) -> Dict[str, Any]:
        """Record presence and return the full snapshot for this connection only."""
        async with self._lock:
            if guest_name:
                self.state.add_guest(guest_name)
                connection.guest_name = guest_name
            if connection.is_open:
                connection.state = ConnectionState.JOINED
            return self.state.snapshot()

    async def apply_update(self, connection: Connection, changes: Dict[str, Any], payload: Dict[str, Any]) -> bool:
        """
        Merge `changes` into the state and fan the original `payload` out to every
        other subscriber. Returns False when nothing was applied.
        """
        if not changes:
            return False
        async with self._lock:
            if not connection.is_open:
                return False
            self.state.apply(changes)
            await self._channel_layer.group_send(
                self.group_name,
                {"type": UPDATE_EVENT, "payload": payload, "sender": connection.channel_name},
            )
        return True

    async def snapshot(self) -> Dict[str, Any]:
        async with self._lock:
            return self.state.snapshot()

    def is_idle_for(self, seconds: float, now: Optional[float] = None) -> bool:
        if self.connections or self.idle_since is None:
            return False
        now = time.monotonic() if now is None else now
        return now - self.idle_since >= seconds


class SessionRegistry:
    """
    Process-wide session_id -> Session map.

    attach() resolves-or-creates and subscribes under the registry lock, so two
    racing first connections end up on the same Session and eviction can never
    remove a session between lookup and subscribe.
    """

    def __init__(
        self,
        channel_layer: Any = None,
        idle_ttl_seconds: int = 0,
        sweep_interval_seconds: int = 60,
    ):
        self._sessions: Dict[str, Session] = {}
        self._lock = asyncio.Lock()
        self._channel_layer = channel_layer
        self.idle_ttl_seconds = idle_ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._sweep_task: Optional[asyncio.Task] = None

    @property
    def channel_layer(self) -> Any:
        if self._channel_layer is None:
            self._channel_layer = get_channel_layer()
        return self._channel_layer

    def _resolve_or_create_locked(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            session = Session(session_id, self.channel_layer)
            self._sessions[session_id] = session
            logger.info("Created board session %s", session_id)
        return session

    async def resolve_or_create(self, session_id: str) -> Session:
        async with self._lock:
            return self._resolve_or_create_locked(session_id)

    async def attach(self, session_id: str, connection: Connection) -> Session:
        async with self._lock:
            session = self._resolve_or_create_locked(session_id)
            await session.add_connection(connection)
        self._ensure_sweeper()
        return session

    async def detach(self, connection: Connection) -> None:
        session = self._sessions.get(connection.session_id)
        if session is None:
            connection.state = ConnectionState.CLOSED
            return
        await session.remove_connection(connection)

    def get(self, session_id: str) -> Optional[Session]:
        """Lookup only; never creates."""
        return self._sessions.get(session_id)

    async def snapshot(self, session_id: str) -> Optional[Dict[str, Any]]:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        return await session.snapshot()

    def session_count(self) -> int:
        return len(self._sessions)

    async def evict_idle(self, now: Optional[float] = None) -> List[str]:
        """Drop sessions with no connections for longer than idle_ttl_seconds."""
        if self.idle_ttl_seconds <= 0:
            return []
        async with self._lock:
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if session.is_idle_for(self.idle_ttl_seconds, now=now)
            ]
            for session_id in expired:
                del self._sessions[session_id]
        for session_id in expired:
            logger.info("Evicted idle board session %s", session_id)
        return expired

    def _ensure_sweeper(self) -> None:
        if self.idle_ttl_seconds <= 0:
            return
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def _sweep_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.sweep_interval_seconds)
                await self.evict_idle()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Idle session sweep failed")

    async def close(self) -> None:
        """Stop the background sweep (process shutdown / tests)."""
        if self._sweep_task and not self._sweep_task.done():
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
        self._sweep_task = None
