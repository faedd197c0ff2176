"""Core types shared by the bridge and the transport layer.

These define the contract between:
- The ACP transport and the request coordinator (SessionUpdate, StopReason)
- The router and the coordinator (Verdict, Route)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------


class UpdateKind(Enum):
    """Types of outward updates produced from kilo output."""

    AGENT_MESSAGE_CHUNK = "agent_message_chunk"
    TOOL_CALL = "tool_call"


class StopReason(Enum):
    """How a prompt ended. Values match ACP stop reasons."""

    END_TURN = "end_turn"
    CANCELLED = "cancelled"


class SessionState(Enum):
    """Lifecycle of a session's in-flight slot."""

    IDLE = "idle"  # No request in flight
    RUNNING = "running"  # Request installed, child spawning or streaming
    DRAINING = "draining"  # Child closed stdout, tail lines still routing


class Verdict(Enum):
    """What routing an event means for the in-flight request."""

    CONTINUE = "continue"
    COMPLETE = "complete"
    FAIL = "fail"


# -----------------------------------------------------------------------------
# Data Classes
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SessionUpdate:
    """Transport-agnostic update for one session.

    The ACP agent turns these into ``session/update`` notifications.
    """

    kind: UpdateKind
    session_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: float = 0.0


@dataclass(frozen=True, slots=True)
class Route:
    """Result of routing one event: an optional update plus a verdict."""

    update: SessionUpdate | None = None
    verdict: Verdict = Verdict.CONTINUE
    stop_reason: StopReason | None = None
    error: Exception | None = None


UpdateEmitter = Callable[[SessionUpdate], Awaitable[None]]
