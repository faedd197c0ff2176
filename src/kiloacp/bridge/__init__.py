"""Session bridge between ACP prompts and kilo child processes.

Components, leaves first:
- LineFramer: raw stdout chunks -> complete lines
- classify: line -> KiloEvent (malformed lines dropped)
- route_event: KiloEvent -> optional SessionUpdate + Verdict
- ProcessRunner / ProcessHandle: child process ownership
- SessionRegistry / Session: per-session state
- RequestCoordinator: one in-flight prompt per session
"""

from kiloacp.bridge.coordinator import RequestCoordinator
from kiloacp.bridge.errors import (
    BridgeError,
    KiloError,
    KiloSpawnError,
    PromptSupersededError,
    SessionClosedError,
    SessionNotFoundError,
)
from kiloacp.bridge.events import ContentPart, KiloEvent, classify
from kiloacp.bridge.framing import LineFramer
from kiloacp.bridge.process import ProcessHandle, ProcessRunner
from kiloacp.bridge.protocols import (
    Route,
    SessionState,
    SessionUpdate,
    StopReason,
    UpdateKind,
    Verdict,
)
from kiloacp.bridge.router import route_event
from kiloacp.bridge.session import InFlightRequest, Session, SessionRegistry

__all__ = [
    # Coordinator
    "RequestCoordinator",
    # Errors
    "BridgeError",
    "KiloError",
    "KiloSpawnError",
    "PromptSupersededError",
    "SessionClosedError",
    "SessionNotFoundError",
    # Pipeline
    "LineFramer",
    "ContentPart",
    "KiloEvent",
    "classify",
    "route_event",
    "Route",
    "Verdict",
    # Processes
    "ProcessHandle",
    "ProcessRunner",
    # Sessions
    "InFlightRequest",
    "Session",
    "SessionRegistry",
    "SessionState",
    "SessionUpdate",
    "StopReason",
    "UpdateKind",
]
