"""
Client for the board sync service.

Supports:
- WebSocket board session:   /ws/board/<session_id>/
- HTTP snapshot:             GET /session-state/<session_id>/

WebSocket protocol (`BoardSessionConsumer`):
- Client sends:
  {"type": "join",   "payload": {"guestName": "..."}, "sessionId": "...", "guestName": "..."}
  {"type": "update", "payload": {"strokes": [...], "textboxes": [...], "zoomLevel": 1.5,
                                 "codeText": "...", "codeLanguage": "python"}, ...}
- Server sends:
  {"type": "update", "payload": {...}}   (full snapshot after join, partial updates after)

BoardClient keeps the session alive across network drops: fixed delay between
attempts, a bound on consecutive failed attempts, and `join` re-sent after every
successful (re)connect so the client always resyncs from a fresh snapshot.
"""

from __future__ import annotations

import argparse
import asyncio
import inspect
import json
import logging
import sys
import urllib.parse
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import aiohttp
import websockets
from websockets.exceptions import WebSocketException

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY = 1.0

# Failures that end one connection attempt but not the client.
TRANSIENT_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)

UpdateCallback = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]
ConnectCallback = Callable[[], Union[None, Awaitable[None]]]


class ReconnectExhausted(RuntimeError):
    """Raised by BoardClient.run() after max_retries consecutive failed attempts."""


def new_textbox_id() -> str:
    """Random 128-bit id; concurrent creators on one board never collide."""
    return uuid.uuid4().hex


def _rstrip_slash(s: str) -> str:
    return s[:-1] if s.endswith("/") else s


def _ws_board_url(ws_base: str, session_id: str) -> str:
    return f"{_rstrip_slash(ws_base)}/ws/board/{urllib.parse.quote(session_id, safe='')}/"


def _http_url(http_base: str, path: str) -> str:
    return f"{_rstrip_slash(http_base)}{path}"


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


async def _default_connect(url: str, headers: List[Tuple[str, str]]) -> Any:
    kwargs: Dict[str, Any] = {}
    if headers:
        sig = inspect.signature(websockets.connect)
        if "additional_headers" in sig.parameters:
            kwargs["additional_headers"] = headers
        elif "extra_headers" in sig.parameters:
            kwargs["extra_headers"] = headers
    return await websockets.connect(url, **kwargs)


class BoardClient:
    def __init__(
        self,
        ws_base: str,
        session_id: str,
        guest_name: str,
        on_update: Optional[UpdateCallback] = None,
        *,
        on_connect: Optional[ConnectCallback] = None,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_retries: Optional[int] = None,
        origin: Optional[str] = None,
        connect: Optional[Callable[[str, List[Tuple[str, str]]], Awaitable[Any]]] = None,
    ):
        self.session_id = session_id
        self.guest_name = guest_name
        self.url = _ws_board_url(ws_base, session_id)
        self.on_update = on_update
        self.on_connect = on_connect
        self.retry_delay = retry_delay
        self.max_retries = max_retries
        self._headers: List[Tuple[str, str]] = [("Origin", origin)] if origin else []
        self._connect = connect or _default_connect
        self._ws: Any = None
        self._task: Optional[asyncio.Task] = None
        self.connect_count = 0

    @property
    def connected(self) -> bool:
        return self._ws is not None

    def _envelope(self, msg_type: str, payload: Dict[str, Any]) -> str:
        return json.dumps(
            {"type": msg_type, "payload": payload, "sessionId": self.session_id, "guestName": self.guest_name},
            separators=(",", ":"),
            ensure_ascii=False,
        )

    async def send_update(self, payload: Dict[str, Any]) -> bool:
        """Send an update if currently connected. Returns False when it was not sent."""
        ws = self._ws
        if ws is None:
            return False
        try:
            await ws.send(self._envelope("update", payload))
        except TRANSIENT_ERRORS as e:
            logger.info("Update not sent (session=%s): %s", self.session_id, e)
            return False
        return True

    async def run(self) -> None:
        """Connect, serve, and reconnect until cancelled or retries run out."""
        failures = 0
        while True:
            try:
                ws = await self._connect(self.url, self._headers)
            except TRANSIENT_ERRORS as e:
                failures += 1
                if self.max_retries is not None and failures > self.max_retries:
                    raise ReconnectExhausted(
                        f"gave up on {self.url} after {failures} failed attempt(s)"
                    ) from e
                logger.info("Connect to %s failed (%s); retrying in %ss", self.url, e, self.retry_delay)
                await asyncio.sleep(self.retry_delay)
                continue

            failures = 0
            await self._serve(ws)
            await asyncio.sleep(self.retry_delay)

    async def _serve(self, ws: Any) -> None:
        self._ws = ws
        self.connect_count += 1
        try:
            await ws.send(self._envelope("join", {"guestName": self.guest_name}))
            if self.on_connect is not None:
                await _maybe_await(self.on_connect())
            while True:
                raw = await ws.recv()
                try:
                    msg = json.loads(raw)
                except json.JSONDecodeError:
                    continue
                if not isinstance(msg, dict) or msg.get("type") != "update":
                    continue
                payload = msg.get("payload")
                if isinstance(payload, dict) and self.on_update is not None:
                    await _maybe_await(self.on_update(payload))
        except TRANSIENT_ERRORS as e:
            logger.info("Board connection lost (session=%s): %s", self.session_id, e)
        finally:
            self._ws = None
            try:
                await ws.close()
            except TRANSIENT_ERRORS:
                pass

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Tear down: cancels the live connection and any pending retry."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


async def fetch_snapshot(http_base: str, session_id: str) -> Optional[Dict[str, Any]]:
    """Returns the session's state, or None if the server has never seen the session."""
    url = _http_url(http_base, f"/session-state/{urllib.parse.quote(session_id, safe='')}/")
    async with aiohttp.ClientSession() as session:
        async with session.get(url) as resp:
            if resp.status == 404:
                return None
            resp.raise_for_status()
            return await resp.json()


async def push_update(
    *, ws_base: str, session_id: str, guest_name: str, payload: Dict[str, Any], origin: Optional[str] = None
) -> bool:
    sent = asyncio.Event()
    result = {"ok": False}

    async def _on_connect() -> None:
        result["ok"] = await client.send_update(payload)
        sent.set()

    client = BoardClient(
        ws_base, session_id, guest_name, on_connect=_on_connect, max_retries=3, origin=origin
    )
    task = client.start()
    try:
        waiter = asyncio.ensure_future(sent.wait())
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        waiter.cancel()
        if task.done():
            task.result()
    finally:
        await client.stop()
    return result["ok"]


async def watch(*, ws_base: str, session_id: str, guest_name: str, origin: Optional[str] = None) -> int:
    def _print(payload: Dict[str, Any]) -> None:
        sys.stdout.write(json.dumps(payload, ensure_ascii=False) + "\n")
        sys.stdout.flush()

    def _connected() -> None:
        sys.stderr.write(f"[joined session={session_id} as {guest_name}]\n")
        sys.stderr.flush()

    client = BoardClient(ws_base, session_id, guest_name, _print, on_connect=_connected, origin=origin)
    try:
        await client.start()
    except ReconnectExhausted as e:
        sys.stderr.write(f"{e}\n")
        return 1
    return 0


def _json_arg(s: str, *, name: str) -> Any:
    try:
        return json.loads(s)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON for {name}: {e}") from e


async def main() -> int:
    parser = argparse.ArgumentParser(description="CLI client for the board sync service")
    parser.add_argument("--http", default="http://localhost:8000", help="HTTP base, e.g. http://localhost:8000")
    parser.add_argument("--ws", default="ws://localhost:8000", help="WS base, e.g. ws://localhost:8000")
    parser.add_argument("--origin", help="Optional Origin header for WebSocket handshake")
    parser.add_argument("--session", required=True, help="Session id (the token in the board URL)")

    sub = parser.add_subparsers(dest="cmd", required=True)

    p_watch = sub.add_parser("watch", help="Join and print remote updates")
    p_watch.add_argument("--guest", default="cli-guest", help="Display name")

    p_push = sub.add_parser("push", help="Join and send one update")
    p_push.add_argument("--guest", default="cli-guest", help="Display name")
    p_push.add_argument("--payload-json", required=True, help='e.g. {"zoomLevel": 1.5}')

    sub.add_parser("snapshot", help="Fetch the session state (HTTP)")

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if args.cmd == "watch":
        return await watch(ws_base=args.ws, session_id=args.session, guest_name=args.guest, origin=args.origin)

    if args.cmd == "push":
        payload = _json_arg(args.payload_json, name="--payload-json")
        ok = await push_update(
            ws_base=args.ws, session_id=args.session, guest_name=args.guest, payload=payload, origin=args.origin
        )
        return 0 if ok else 1

    if args.cmd == "snapshot":
        data = await fetch_snapshot(args.http, args.session)
        if data is None:
            sys.stderr.write(f"Session not found: {args.session}\n")
            return 1
        print(json.dumps(data, indent=2, ensure_ascii=False))
        return 0

    return 2


def cli() -> None:
    raise SystemExit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
