"""Session records and the registry that owns them.

Sessions live in the registry's table and are addressed by id; requests
and processes come and go underneath them. State is an explicit tag so a
session can never be Idle while still holding a request.
"""

from __future__ import annotations

import asyncio
import secrets
import uuid
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from kiloacp.bridge.errors import SessionNotFoundError
from kiloacp.bridge.events import KiloEvent
from kiloacp.bridge.protocols import SessionState, StopReason
from kiloacp.logging import get_logger

if TYPE_CHECKING:
    from kiloacp.bridge.process import ProcessHandle

log = get_logger("bridge.session")


def generate_session_id() -> str:
    """128 bits of randomness, hex encoded."""
    return secrets.token_hex(16)


@dataclass(eq=False)
class InFlightRequest:
    """Bookkeeping for one outstanding prompt.

    The future is the single-shot result channel: the first resolve() or
    reject() wins and every later call is a no-op returning False.
    """

    future: asyncio.Future[StopReason]
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    process: ProcessHandle | None = None

    @classmethod
    def create(cls) -> InFlightRequest:
        return cls(future=asyncio.get_running_loop().create_future())

    @property
    def settled(self) -> bool:
        return self.future.done()

    @property
    def cancel_requested(self) -> bool:
        return self.cancel_event.is_set()

    def resolve(self, stop_reason: StopReason) -> bool:
        if self.future.done():
            return False
        self.future.set_result(stop_reason)
        return True

    def reject(self, error: BaseException) -> bool:
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True


@dataclass(eq=False)
class Session:
    """One conversation bound to a working directory."""

    session_id: str
    cwd: str
    max_events: int | None = None
    state: SessionState = SessionState.IDLE
    request: InFlightRequest | None = None
    created_at: datetime = field(default_factory=datetime.now)
    events: deque[KiloEvent] = field(init=False)

    def __post_init__(self) -> None:
        self.events = deque(maxlen=self.max_events or None)

    @property
    def process(self) -> ProcessHandle | None:
        return self.request.process if self.request else None

    def record(self, event: KiloEvent) -> None:
        """Append to the event log (oldest entries drop once capped)."""
        self.events.append(event)

    def begin(self, request: InFlightRequest) -> None:
        """Install ``request`` as the in-flight request (Idle -> Running)."""
        if self.request is not None:
            raise RuntimeError(
                f"Session {self.session_id} already has request {self.request.request_id}"
            )
        self.request = request
        self.state = SessionState.RUNNING

    def drain(self, request: InFlightRequest) -> None:
        """Mark the child's output as closed (Running -> Draining)."""
        if self.request is request:
            self.state = SessionState.DRAINING

    def detach(self, request: InFlightRequest) -> bool:
        """Clear the in-flight slot if ``request`` still holds it (-> Idle)."""
        if self.request is not request:
            return False
        self.request = None
        self.state = SessionState.IDLE
        return True


class SessionRegistry:
    """Owns every Session, keyed by session id."""

    def __init__(self, max_events: int | None = None) -> None:
        self._sessions: dict[str, Session] = {}
        self._max_events = max_events

    def create(self, cwd: str, session_id: str | None = None) -> Session:
        session_id = session_id or generate_session_id()
        session = Session(session_id=session_id, cwd=cwd, max_events=self._max_events)
        self._sessions[session_id] = session
        log.debug("Registered session %s (cwd=%s)", session_id, cwd)
        return session

    def get(self, session_id: str) -> Session:
        """Look up a session, raising SessionNotFoundError if unknown."""
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def find(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def clear(self) -> None:
        self._sessions.clear()

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))
