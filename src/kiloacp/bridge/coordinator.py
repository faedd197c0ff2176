"""One in-flight prompt per session, settled exactly once.

Transitions per session:

    Idle -> Running       prompt() installs a request and spawns kilo
    Running -> Running    a newer prompt supersedes: the old request is
                          signalled, its child terminated, and it is
                          rejected with PromptSupersededError on the spot
    Running -> Draining   kilo closed stdout; the flushed tail is routed
    Running/Draining -> Idle
                          step_finish, error, child exit, spawn failure

cancel() only signals and terminates; settlement still arrives through
routing or the exit path. Every settle goes through _settle(), which
frees the session slot before touching the request's future.
"""

from __future__ import annotations

import asyncio
from functools import partial

from kiloacp.bridge.errors import (
    KiloSpawnError,
    PromptSupersededError,
    SessionClosedError,
)
from kiloacp.bridge.events import classify
from kiloacp.bridge.process import ProcessRunner
from kiloacp.bridge.protocols import StopReason, UpdateEmitter, Verdict
from kiloacp.bridge.router import route_event
from kiloacp.bridge.session import InFlightRequest, Session, SessionRegistry
from kiloacp.logging import get_logger

log = get_logger("bridge.coordinator")


class RequestCoordinator:
    """Run prompts against kilo and route its output for each session."""

    def __init__(
        self,
        registry: SessionRegistry,
        runner: ProcessRunner,
        emit: UpdateEmitter,
    ) -> None:
        self._registry = registry
        self._runner = runner
        self._emit = emit

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    async def prompt(self, session_id: str, text: str) -> StopReason:
        """Send ``text`` to a fresh kilo run and wait for it to settle.

        Raises:
            SessionNotFoundError: Unknown session (nothing else happens).
            KiloSpawnError: kilo could not be started.
            KiloError: kilo reported an error event.
            PromptSupersededError: A newer prompt replaced this one.
        """
        session = self._registry.get(session_id)
        self._supersede(session)

        request = InFlightRequest.create()
        session.begin(request)
        log.info("Prompt %s started in session %s", request.request_id, session_id)

        try:
            handle = await self._runner.spawn(
                self._runner.build_args(text),
                cwd=session.cwd,
                on_line=partial(self._handle_line, session, request),
                on_exit=partial(self._handle_exit, session, request),
                on_eof=partial(session.drain, request),
            )
        except KiloSpawnError as e:
            log.error("Failed to spawn kilo for session %s: %s", session_id, e)
            self._settle(session, request, error=e)
        else:
            request.process = handle
            # Superseded, cancelled or closed while the child was starting
            if request.settled or request.cancel_requested:
                handle.terminate()

        try:
            return await request.future
        finally:
            if session.detach(request):
                # Caller went away before the request settled
                log.info("Prompt %s abandoned by caller", request.request_id)
                request.cancel_event.set()
                if request.process is not None:
                    request.process.terminate()

    async def cancel(self, session_id: str) -> None:
        """Signal the in-flight request and terminate its child.

        Idempotent: a session with nothing in flight is left untouched.
        """
        session = self._registry.get(session_id)
        request = session.request
        if request is None:
            log.debug("Cancel for idle session %s ignored", session_id)
            return
        log.info("Cancelling prompt %s in session %s", request.request_id, session_id)
        request.cancel_event.set()
        if request.process is not None:
            request.process.terminate()

    async def close(self, timeout: float = 2.0) -> None:
        """Tear down every session, rejecting whatever is still in flight."""
        handles = []
        for session in self._registry:
            request = session.request
            if request is None:
                continue
            request.cancel_event.set()
            if request.process is not None:
                request.process.terminate()
                handles.append(request.process)
            self._settle(session, request, error=SessionClosedError("Session registry closed"))
        self._registry.clear()

        if handles:
            _, pending = await asyncio.wait(
                [asyncio.ensure_future(h.wait()) for h in handles], timeout=timeout
            )
            for task in pending:
                task.cancel()

    def _supersede(self, session: Session) -> None:
        previous = session.request
        if previous is None:
            return
        log.info(
            "Prompt %s in session %s superseded", previous.request_id, session.session_id
        )
        previous.cancel_event.set()
        if previous.process is not None:
            previous.process.terminate()
        self._settle(
            session,
            previous,
            error=PromptSupersededError(session.session_id, previous.request_id),
        )

    def _settle(
        self,
        session: Session,
        request: InFlightRequest,
        *,
        stop_reason: StopReason | None = None,
        error: BaseException | None = None,
    ) -> bool:
        session.detach(request)
        if error is not None:
            settled = request.reject(error)
        else:
            settled = request.resolve(stop_reason or StopReason.END_TURN)
        if settled:
            log.info(
                "Prompt %s settled: %s",
                request.request_id,
                error if error is not None else (stop_reason or StopReason.END_TURN).value,
            )
        return settled

    async def _handle_line(self, session: Session, request: InFlightRequest, line: str) -> None:
        event = classify(line)
        if event is None:
            return
        session.record(event)

        # Late output from a settled or replaced run is logged, never routed
        if request.settled or session.request is not request:
            return

        try:
            route = route_event(session.session_id, event)
            if route.update is not None:
                await self._emit(route.update)
        except Exception as e:
            log.exception("Failed to route kilo event in session %s", session.session_id)
            self._settle(session, request, error=e)
            return

        if route.verdict is Verdict.COMPLETE:
            self._settle(session, request, stop_reason=route.stop_reason)
        elif route.verdict is Verdict.FAIL:
            self._settle(session, request, error=route.error)

    async def _handle_exit(
        self, session: Session, request: InFlightRequest, returncode: int | None
    ) -> None:
        if returncode:
            log.warning(
                "kilo exited with code %s in session %s", returncode, session.session_id
            )
        if request.settled:
            return
        # The child finishing is itself the end of its response
        stop_reason = StopReason.CANCELLED if request.cancel_requested else StopReason.END_TURN
        self._settle(session, request, stop_reason=stop_reason)
