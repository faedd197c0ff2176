"""Root pytest configuration for all tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from helpers import UpdateRecorder
from kiloacp.config import reset_config

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def _fresh_config():
    """Never leak a cached config between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def make_kilo(tmp_path: Path) -> Callable[..., str]:
    """Write an executable /bin/sh script standing in for the kilo binary.

    The script sees kilo's real argv: ``run --format json <prompt>``, so the
    prompt text is ``$4``.
    """

    def _make(body: str, name: str = "kilo") -> str:
        script = tmp_path / name
        script.write_text("#!/bin/sh\n" + body, encoding="utf-8")
        script.chmod(0o755)
        return str(script)

    return _make


@pytest.fixture
def recorder() -> UpdateRecorder:
    return UpdateRecorder()
