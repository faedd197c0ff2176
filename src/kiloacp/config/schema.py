"""Configuration schema dataclasses for kilo-acp.

Defines the structure of configuration at all levels (system, user, project).
All fields have defaults so partial configs merge together cleanly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Environment injected into every kilo child so it never tries to drive a TTY
DEFAULT_CHILD_ENV = {
    "TERM": "dumb",
    "CI": "true",
}


@dataclass
class KiloConfig:
    """How the kilo child process is launched.

    Example config.yaml:
        kilo:
          binary: /opt/kilo/bin/kilo
          extra_args: ["--model", "anthropic/claude-sonnet-4"]
          env:
            KILO_LOG: debug
          terminate_timeout: 3.0
    """

    binary: str = "kilo"
    extra_args: list[str] = field(default_factory=list)  # Inserted before the prompt text
    env: dict[str, str] = field(default_factory=dict)  # Merged over DEFAULT_CHILD_ENV
    terminate_timeout: float | None = 5.0  # SIGTERM -> SIGKILL grace; None disables kill

    def child_env(self) -> dict[str, str]:
        """Environment overrides applied on top of the parent environment."""
        env = dict(DEFAULT_CHILD_ENV)
        env.update(self.env)
        return env


@dataclass
class SessionConfig:
    """Per-session bookkeeping limits."""

    max_event_log: int | None = None  # None or 0 keeps every event


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # TRACE, DEBUG, VERBOSE, INFO, WARNING, ERROR
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object.

    Aggregates all configuration sections. All fields use default factories
    to ensure partial configs work correctly with deep merging.
    """

    kilo: KiloConfig = field(default_factory=KiloConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Extension point for future config sections
    extra: dict[str, Any] = field(default_factory=dict)
