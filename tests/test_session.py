"""Tests for session records, in-flight requests and the registry."""

from __future__ import annotations

import re

import pytest

from kiloacp.bridge.errors import SessionNotFoundError
from kiloacp.bridge.events import KiloEvent
from kiloacp.bridge.protocols import SessionState, StopReason
from kiloacp.bridge.session import InFlightRequest, SessionRegistry, generate_session_id


class TestSessionRegistry:
    """Tests for SessionRegistry."""

    def test_session_ids_are_128_bit_hex(self) -> None:
        session_id = generate_session_id()
        assert re.fullmatch(r"[0-9a-f]{32}", session_id)

    def test_create_returns_unique_ids(self) -> None:
        registry = SessionRegistry()
        first = registry.create(cwd="/project1")
        second = registry.create(cwd="/project2")
        assert first.session_id != second.session_id
        assert len(registry) == 2
        assert first.session_id in registry

    def test_new_session_is_idle(self) -> None:
        session = SessionRegistry().create(cwd="/work")
        assert session.cwd == "/work"
        assert session.state is SessionState.IDLE
        assert session.request is None
        assert session.process is None
        assert list(session.events) == []

    def test_get_unknown_raises(self) -> None:
        registry = SessionRegistry()
        with pytest.raises(SessionNotFoundError, match="Session nope not found"):
            registry.get("nope")
        assert registry.find("nope") is None

    def test_clear(self) -> None:
        registry = SessionRegistry()
        registry.create(cwd="/a")
        registry.clear()
        assert len(registry) == 0

    def test_event_log_cap(self) -> None:
        session = SessionRegistry(max_events=2).create(cwd="/a")
        for kind in ("one", "two", "three"):
            session.record(KiloEvent(kind=kind))
        assert [e.kind for e in session.events] == ["two", "three"]

    def test_event_log_unbounded_by_default(self) -> None:
        session = SessionRegistry().create(cwd="/a")
        for _ in range(500):
            session.record(KiloEvent(kind="ping"))
        assert len(session.events) == 500


class TestInFlightRequest:
    """Settlement is single-shot."""

    async def test_resolve_once(self) -> None:
        request = InFlightRequest.create()
        assert request.resolve(StopReason.END_TURN) is True
        assert request.resolve(StopReason.CANCELLED) is False
        assert request.reject(RuntimeError("late")) is False
        assert request.settled
        assert await request.future is StopReason.END_TURN

    async def test_reject_once(self) -> None:
        request = InFlightRequest.create()
        assert request.reject(RuntimeError("first")) is True
        assert request.resolve(StopReason.END_TURN) is False
        with pytest.raises(RuntimeError, match="first"):
            await request.future

    async def test_cancel_flag(self) -> None:
        request = InFlightRequest.create()
        assert not request.cancel_requested
        request.cancel_event.set()
        assert request.cancel_requested
        assert not request.settled


class TestSessionTransitions:
    """Explicit state tags follow the in-flight slot."""

    async def test_begin_drain_detach(self) -> None:
        session = SessionRegistry().create(cwd="/a")
        request = InFlightRequest.create()

        session.begin(request)
        assert session.state is SessionState.RUNNING
        assert session.request is request

        session.drain(request)
        assert session.state is SessionState.DRAINING

        assert session.detach(request) is True
        assert session.state is SessionState.IDLE
        assert session.request is None
        assert session.detach(request) is False

    async def test_begin_twice_is_an_error(self) -> None:
        session = SessionRegistry().create(cwd="/a")
        session.begin(InFlightRequest.create())
        with pytest.raises(RuntimeError, match="already has request"):
            session.begin(InFlightRequest.create())

    async def test_stale_request_cannot_drain_or_detach(self) -> None:
        session = SessionRegistry().create(cwd="/a")
        stale = InFlightRequest.create()
        current = InFlightRequest.create()
        session.begin(current)

        session.drain(stale)
        assert session.state is SessionState.RUNNING
        assert session.detach(stale) is False
        assert session.request is current
