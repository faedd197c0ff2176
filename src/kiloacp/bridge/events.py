"""Parsed kilo output records.

Each stdout line from ``kilo run --format json`` is an independent JSON
object. Lines that fail to decode are noise (kilo occasionally prints
diagnostics to stdout) and are dropped here without raising.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from kiloacp.logging import TRACE, get_logger

log = get_logger("bridge.events")

# Kinds the router acts on; anything else is logged and ignored
TEXT = "text"
TOOL = "tool"
STEP_FINISH = "step_finish"
ERROR = "error"


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


@dataclass(frozen=True, slots=True)
class ContentPart:
    """A fragment of streamed content (text chunk, tool invocation, ...)."""

    id: str | None = None
    type: str | None = None
    text: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> ContentPart | None:
        if not isinstance(data, dict):
            return None
        return cls(
            id=_str_or_none(data.get("id")),
            type=_str_or_none(data.get("type")),
            text=_str_or_none(data.get("text")),
        )


@dataclass(frozen=True, slots=True)
class KiloEvent:
    """One classified line of kilo output.

    Attributes:
        kind: Free-form kind tag. Read from ``kind``, falling back to the
            ``type`` field that kilo itself emits.
        timestamp: Child-side timestamp, if present.
        session_id: kilo's own session identifier, if present.
        part: Content fragment for streamed kinds.
        text / message / reason: Plain fields used by status and error kinds.
        raw: The decoded object, kept for diagnostics.
    """

    kind: str
    timestamp: float | None = None
    session_id: str | None = None
    part: ContentPart | None = None
    text: str | None = None
    message: str | None = None
    reason: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KiloEvent:
        kind = data.get("kind")
        if not isinstance(kind, str):
            kind = data.get("type")
        timestamp = data.get("timestamp")
        return cls(
            kind=kind if isinstance(kind, str) else "",
            timestamp=float(timestamp) if isinstance(timestamp, (int, float)) else None,
            session_id=_str_or_none(data.get("sessionID") or data.get("session_id")),
            part=ContentPart.from_dict(data.get("part")),
            text=_str_or_none(data.get("text")),
            message=_str_or_none(data.get("message")) or _error_message(data.get("error")),
            reason=_str_or_none(data.get("reason")),
            raw=data,
        )

    @property
    def content_text(self) -> str | None:
        """Streamed text, preferring the content part over the top-level field."""
        if self.part is not None and self.part.text:
            return self.part.text
        return self.text


def _error_message(error: Any) -> str | None:
    # kilo nests failures as {"error": {"name": ..., "data": {"message": ...}}}
    if isinstance(error, str):
        return error
    if isinstance(error, dict):
        data = error.get("data")
        if isinstance(data, dict) and isinstance(data.get("message"), str):
            return data["message"]
        return _str_or_none(error.get("message"))
    return None


def classify(line: str) -> KiloEvent | None:
    """Decode one line into a KiloEvent, or None if it is not a JSON object."""
    stripped = line.strip()
    if not stripped:
        return None
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        log.log(TRACE, "Dropping non-JSON line: %.200s", stripped)
        return None
    if not isinstance(data, dict):
        log.log(TRACE, "Dropping non-object line: %.200s", stripped)
        return None
    return KiloEvent.from_dict(data)
