"""Test utilities shared by the bridge and ACP tests."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable

import pytest

from kiloacp.bridge.protocols import SessionUpdate

requires_posix_shell = pytest.mark.skipif(
    sys.platform == "win32", reason="fake kilo binaries are /bin/sh scripts"
)


class UpdateRecorder:
    """Async update sink that keeps everything it is given."""

    def __init__(self) -> None:
        self.updates: list[SessionUpdate] = []

    async def __call__(self, update: SessionUpdate) -> None:
        self.updates.append(update)

    @property
    def texts(self) -> list[str]:
        return [u.payload["text"] for u in self.updates if "text" in u.payload]


async def eventually(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)
