"""Errors raised by the session bridge.

Every one of these is settled at the session boundary: they reach the
caller of a single prompt and never the event loop hosting other sessions.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for session bridge errors."""


class SessionNotFoundError(BridgeError):
    """Raised when an operation names a session that does not exist."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class KiloSpawnError(BridgeError):
    """Raised when the kilo child process cannot be started."""


class KiloError(BridgeError):
    """An error reported by the kilo child through an ``error`` event."""


class PromptSupersededError(BridgeError):
    """The prompt was replaced by a newer prompt before it settled."""

    def __init__(self, session_id: str, request_id: str) -> None:
        super().__init__(f"Prompt {request_id} in session {session_id} was superseded")
        self.session_id = session_id
        self.request_id = request_id


class SessionClosedError(BridgeError):
    """The session registry was torn down while a prompt was in flight."""
