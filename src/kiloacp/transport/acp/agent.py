"""ACP Agent implementation for kilo.

This module exposes kilo to Zed, Rider and other ACP-supporting editors.
Session and request bookkeeping lives in kiloacp.bridge; this adapter only
translates ACP calls into coordinator calls and bridge updates into
``session/update`` notifications.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import acp
from acp.schema import (
    AgentCapabilities,
    ClientCapabilities,
    Implementation,
    PromptCapabilities,
)

from kiloacp import __version__
from kiloacp.bridge.coordinator import RequestCoordinator
from kiloacp.bridge.errors import (
    BridgeError,
    PromptSupersededError,
    SessionNotFoundError,
)
from kiloacp.bridge.process import ProcessRunner
from kiloacp.bridge.protocols import SessionUpdate, StopReason, UpdateKind
from kiloacp.bridge.session import SessionRegistry
from kiloacp.config import Config, get_config
from kiloacp.logging import get_logger

log = get_logger("acp")

if TYPE_CHECKING:
    from acp.interfaces import Client

# JSON-RPC error codes
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603

# Queued session updates, or a flush marker resolved once reached
OutboxItem = SessionUpdate | asyncio.Future


def extract_prompt_text(prompt: Iterable[Any]) -> str:
    """Join the text of plain-text content blocks with newlines, in order.

    Blocks may be ACP schema models or raw dicts; images, resources and
    other non-text blocks are skipped.
    """
    parts: list[str] = []
    for block in prompt:
        if isinstance(block, dict):
            block_type, text = block.get("type"), block.get("text")
        else:
            block_type, text = getattr(block, "type", None), getattr(block, "text", None)
        if block_type == "text" and isinstance(text, str):
            parts.append(text)
    return "\n".join(parts)


class KiloAgent:
    """ACP Agent adapter for kilo.

    Outward updates are queued per session and sent by one drain task per
    session, so kilo output is never blocked by a slow client and updates
    reach the client in the order kilo produced them.
    """

    def __init__(
        self,
        config: Config | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        self._config = config or get_config()
        kilo = self._config.kilo
        self._runner = runner or ProcessRunner(
            binary=kilo.binary,
            env=kilo.child_env(),
            extra_args=kilo.extra_args,
            terminate_timeout=kilo.terminate_timeout,
        )
        self._registry = SessionRegistry(max_events=self._config.session.max_event_log)
        self._coordinator = RequestCoordinator(self._registry, self._runner, self._enqueue_update)
        self._conn: Client | None = None

        self._outboxes: dict[str, asyncio.Queue[OutboxItem]] = {}
        self._outbox_tasks: dict[str, asyncio.Task[None]] = {}

    @property
    def coordinator(self) -> RequestCoordinator:
        return self._coordinator

    @property
    def runner(self) -> ProcessRunner:
        return self._runner

    def on_connect(self, conn: Client) -> None:
        """Called when a client connects."""
        self._conn = conn

    # --- Ordered per-session outbox ---

    async def _enqueue_update(self, update: SessionUpdate) -> None:
        session_id = update.session_id
        queue = self._outboxes.get(session_id)
        if queue is None:
            queue = self._outboxes[session_id] = asyncio.Queue()
            self._outbox_tasks[session_id] = asyncio.create_task(
                self._drain_outbox(session_id, queue)
            )
        queue.put_nowait(update)

    async def _drain_outbox(self, session_id: str, queue: asyncio.Queue[OutboxItem]) -> None:
        try:
            while True:
                item = await queue.get()
                if isinstance(item, asyncio.Future):
                    # Flush marker: everything queued before it has been sent
                    if not item.done():
                        item.set_result(None)
                    continue
                try:
                    await self._send_update(item)
                except Exception as e:
                    log.error("Failed to send %s update for %s: %s", item.kind.value, session_id, e)
        finally:
            # Release flushes still waiting behind updates that will never be sent
            while not queue.empty():
                item = queue.get_nowait()
                if isinstance(item, asyncio.Future) and not item.done():
                    item.set_result(None)

    async def _flush_outbox(self, session_id: str) -> None:
        """Wait until every update queued so far for the session has been sent."""
        queue = self._outboxes.get(session_id)
        task = self._outbox_tasks.get(session_id)
        if queue is None or task is None or task.done():
            return
        marker: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        queue.put_nowait(marker)
        await marker

    async def _send_update(self, update: SessionUpdate) -> None:
        if not self._conn:
            log.debug("No ACP client connected, dropping %s update", update.kind.value)
            return

        match update.kind:
            case UpdateKind.AGENT_MESSAGE_CHUNK:
                notification = acp.update_agent_message_text(update.payload["text"])
            case UpdateKind.TOOL_CALL:
                notification = acp.start_tool_call(
                    update.payload["tool_call_id"],
                    update.payload["title"],
                    status=update.payload.get("status", "pending"),
                )
            case _:
                log.warning("Unhandled update kind %s", update.kind)
                return

        await self._conn.session_update(update.session_id, notification)

    # --- ACP methods ---

    async def initialize(
        self,
        protocol_version: int,
        client_capabilities: ClientCapabilities | None = None,
        client_info: Implementation | None = None,
        **kwargs: Any,
    ) -> acp.InitializeResponse:
        """Handle initialization request from client."""
        log.info("Initialize (client protocol=%s)", protocol_version)
        return acp.InitializeResponse(
            protocol_version=acp.PROTOCOL_VERSION,
            agent_info=Implementation(name="kilo-acp", version=__version__),
            agent_capabilities=AgentCapabilities(
                load_session=False,
                prompt_capabilities=PromptCapabilities(
                    image=False,
                    audio=False,
                    embedded_context=False,
                ),
            ),
        )

    async def new_session(
        self,
        cwd: str,
        mcp_servers: list[Any] | None = None,
        **kwargs: Any,
    ) -> acp.NewSessionResponse:
        """Create a new session bound to ``cwd``."""
        session = self._registry.create(cwd=os.path.abspath(cwd))
        log.info("Created session %s (cwd=%s)", session.session_id, session.cwd)
        return acp.NewSessionResponse(session_id=session.session_id)

    async def load_session(
        self,
        cwd: str,
        mcp_servers: list[Any] | None = None,
        session_id: str = "",
        **kwargs: Any,
    ) -> acp.LoadSessionResponse | None:
        """Sessions are not persisted, so there is nothing to load."""
        raise acp.RequestError(
            code=METHOD_NOT_FOUND,
            message="Load session not supported",
        )

    async def authenticate(
        self,
        method_id: str,
        **kwargs: Any,
    ) -> acp.AuthenticateResponse | None:
        """kilo handles its own provider credentials."""
        return None

    async def prompt(
        self,
        prompt: list[Any],
        session_id: str,
        **kwargs: Any,
    ) -> acp.PromptResponse:
        """Run one kilo turn and return its stop reason.

        Updates streamed during the turn are flushed before the response is
        returned, so the response is the last message for this prompt.
        """
        text = extract_prompt_text(prompt)

        try:
            stop_reason = await self._coordinator.prompt(session_id, text)
        except SessionNotFoundError as e:
            raise acp.RequestError(code=INVALID_REQUEST, message=str(e))
        except PromptSupersededError:
            # Updates already queued for the replaced run still go out first
            await self._flush_outbox(session_id)
            return acp.PromptResponse(stop_reason=StopReason.CANCELLED.value)
        except BridgeError as e:
            await self._flush_outbox(session_id)
            raise acp.RequestError(code=INTERNAL_ERROR, message=str(e))

        await self._flush_outbox(session_id)
        return acp.PromptResponse(stop_reason=stop_reason.value)

    async def cancel(self, session_id: str, **kwargs: Any) -> None:
        """Cancel the current prompt in a session."""
        try:
            await self._coordinator.cancel(session_id)
        except SessionNotFoundError:
            log.warning("Cancel for unknown session %s", session_id)

    async def ext_method(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        """Handle extension methods."""
        return {}

    async def ext_notification(self, method: str, params: dict[str, Any]) -> None:
        """Handle extension notifications."""

    async def close(self) -> None:
        """Stop every kilo child and the outbox drain tasks."""
        await self._coordinator.close()
        for task in self._outbox_tasks.values():
            task.cancel()
        self._outbox_tasks.clear()
        self._outboxes.clear()


def create_agent(config: Config | None = None) -> KiloAgent:
    """Create a new kilo ACP agent."""
    return KiloAgent(config)
