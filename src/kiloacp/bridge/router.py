"""Map classified kilo events to outward updates and request verdicts.

| kind          | update                  | verdict              |
|---------------|-------------------------|----------------------|
| text          | agent message chunk     | continue             |
| tool          | pending tool call       | continue             |
| step_finish   | -                       | complete (end_turn)  |
| error         | -                       | fail                 |
| anything else | -                       | continue             |

Routing is pure: logging the event and settling the request are the
coordinator's job.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable

from kiloacp.bridge import events
from kiloacp.bridge.errors import KiloError
from kiloacp.bridge.events import KiloEvent
from kiloacp.bridge.protocols import Route, SessionUpdate, StopReason, UpdateKind, Verdict

DEFAULT_TOOL_TITLE = "Tool Call"
DEFAULT_ERROR_MESSAGE = "Unknown error"

CONTINUE = Route()


def default_tool_call_id() -> str:
    return f"tool-{uuid.uuid4().hex}"


def route_event(
    session_id: str,
    event: KiloEvent,
    *,
    tool_call_id_factory: Callable[[], str] = default_tool_call_id,
) -> Route:
    """Decide what one event means for the session's in-flight request."""
    match event.kind:
        case events.TEXT:
            text = event.content_text
            if not text:
                return CONTINUE
            return Route(
                update=SessionUpdate(
                    kind=UpdateKind.AGENT_MESSAGE_CHUNK,
                    session_id=session_id,
                    payload={"text": text},
                    timestamp=time.time(),
                )
            )

        case events.TOOL:
            part = event.part
            return Route(
                update=SessionUpdate(
                    kind=UpdateKind.TOOL_CALL,
                    session_id=session_id,
                    payload={
                        "tool_call_id": (part.id if part else None) or tool_call_id_factory(),
                        "title": (part.type if part else None) or DEFAULT_TOOL_TITLE,
                        "status": "pending",
                    },
                    timestamp=time.time(),
                )
            )

        case events.STEP_FINISH:
            return Route(verdict=Verdict.COMPLETE, stop_reason=StopReason.END_TURN)

        case events.ERROR:
            message = event.message or event.reason or event.text or DEFAULT_ERROR_MESSAGE
            return Route(verdict=Verdict.FAIL, error=KiloError(message))

    return CONTINUE
