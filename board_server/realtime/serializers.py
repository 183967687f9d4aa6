"""
Pydantic models for the board sync wire protocol.

Envelope, both directions:
    {"type": "join" | "update", "payload": {...}, "sessionId": "...", "guestName": "..."}

Server -> client frames are always {"type": "update", "payload": <state or subset>}.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError


class MalformedMessage(ValueError):
    """Inbound frame that cannot be interpreted. Dropped; the socket stays open."""


class InvalidSessionId(ValueError):
    """Session id taken from the URL path is missing or unusable."""


# Canonical field name -> accepted spellings, in priority order.
# The legacy names are what the original web client sends.
UPDATE_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "strokes": ("strokes",),
    "textboxes": ("textboxes",),
    "zoomLevel": ("zoomLevel", "zoom"),
    "codeText": ("codeText", "code"),
    "codeLanguage": ("codeLanguage", "language"),
}

_SESSION_ID_RE = re.compile(r"^[^\s/]+$")


class Point(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    x: float
    y: float


class Stroke(BaseModel):
    model_config = ConfigDict(extra="allow", allow_inf_nan=False)

    tool: Literal["pen", "eraser"] = Field(validation_alias=AliasChoices("tool", "toolKind"))
    color: Optional[str] = None
    width: Optional[float] = Field(default=None, gt=0, validation_alias=AliasChoices("width", "widthPx"))
    # {x, y} objects (web client) or [x, y] pairs
    points: List[Union[Point, Tuple[float, float]]]


class Textbox(BaseModel):
    model_config = ConfigDict(extra="allow", allow_inf_nan=False)

    id: Union[str, int]
    x: float
    y: float
    width: Optional[float] = Field(default=None, validation_alias=AliasChoices("width", "w"))
    height: Optional[float] = Field(default=None, validation_alias=AliasChoices("height", "h"))
    text: str = ""


class UpdatePayload(BaseModel):
    """
    Recognised update fields under their canonical names.

    Scalars are strict: a value is stored and fanned out exactly as sent, so
    "2" for zoomLevel is malformed rather than coerced.
    """

    model_config = ConfigDict(allow_inf_nan=False)

    strokes: Optional[List[Stroke]] = None
    textboxes: Optional[List[Textbox]] = None
    zoomLevel: Optional[float] = Field(default=None, gt=0, strict=True)
    codeText: Optional[str] = Field(default=None, strict=True)
    codeLanguage: Optional[str] = Field(default=None, strict=True)


class JoinPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    guestName: Optional[str] = None


class Envelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["join", "update"]
    payload: Optional[Dict[str, Any]] = None
    sessionId: Optional[str] = None
    guestName: Optional[str] = None


class UpdateEvent(BaseModel):
    """The only frame the server ever sends."""

    type: Literal["update"] = "update"
    payload: Dict[str, Any]


def _reject_constant(name: str) -> Any:
    raise MalformedMessage(f"non-finite number {name} is not JSON")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise MalformedMessage(f"number {text} out of range")
    return value


def parse_envelope(text_data: str) -> Envelope:
    # NaN / Infinity would be stored and echoed back in snapshots no browser can parse.
    try:
        raw = json.loads(text_data, parse_constant=_reject_constant, parse_float=_finite_float)
    except json.JSONDecodeError as exc:
        raise MalformedMessage(f"invalid json: {exc.msg}") from exc
    if not isinstance(raw, dict):
        raise MalformedMessage("envelope must be a JSON object")
    try:
        return Envelope.model_validate(raw)
    except ValidationError as exc:
        raise MalformedMessage(f"invalid envelope: {exc.error_count()} error(s)") from exc


def extract_changes(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Validate an update payload and return the recognised fields under their canonical names.

    Fields that are absent or null are left out; of several spellings the first
    non-null one wins. Values keep the client's own representation so snapshots
    hand back exactly what collaborators sent.
    """
    if not payload:
        return {}
    changes: Dict[str, Any] = {}
    for name, spellings in UPDATE_FIELD_ALIASES.items():
        key = next((k for k in spellings if payload.get(k) is not None), None)
        if key is not None:
            changes[name] = payload[key]
    try:
        UpdatePayload.model_validate(changes)
    except ValidationError as exc:
        raise MalformedMessage(f"invalid update payload: {exc.error_count()} error(s)") from exc
    return changes


def join_guest_name(envelope: Envelope) -> Optional[str]:
    """Guest name from the join payload, falling back to the top-level copy."""
    candidates = []
    if envelope.payload:
        try:
            candidates.append(JoinPayload.model_validate(envelope.payload).guestName)
        except ValidationError as exc:
            raise MalformedMessage("invalid join payload") from exc
    candidates.append(envelope.guestName)
    for name in candidates:
        if isinstance(name, str) and name.strip():
            return name.strip()
    return None


def normalize_session_id(raw: Optional[str], max_length: int = 128) -> str:
    session_id = (raw or "").strip()
    if not session_id:
        raise InvalidSessionId("session id is required")
    if len(session_id) > max_length:
        raise InvalidSessionId(f"session id longer than {max_length} characters")
    if not _SESSION_ID_RE.match(session_id) or not session_id.isprintable():
        raise InvalidSessionId("session id contains whitespace, '/' or control characters")
    return session_id
