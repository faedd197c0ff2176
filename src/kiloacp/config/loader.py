"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Cascading merge of system, user and project files
- Environment variable overrides
- Conversion from dict to the typed Config dataclass
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from kiloacp.config.paths import get_config_paths
from kiloacp.config.schema import Config, KiloConfig, LoggingConfig, SessionConfig

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("kiloacp.config")

_cached_config: Config | None = None

_KNOWN_SECTIONS = {"kilo", "session", "logging"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``.

    Nested dicts merge recursively, lists and scalars are replaced, and a
    None in ``override`` leaves the base value in place.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(value, dict):
            merged[key] = deep_merge(current if isinstance(current, dict) else {}, value)
        else:
            merged[key] = value
    return merged


def env_overrides() -> dict[str, Any]:
    """Build a config dict from environment variables (highest priority)."""
    overrides: dict[str, Any] = {}

    binary = os.environ.get("KILO_BINARY")
    if binary:
        overrides.setdefault("kilo", {})["binary"] = binary

    log_path = os.environ.get("KILO_ACP_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    log_level = os.environ.get("KILO_ACP_LOG_LEVEL")
    if log_level:
        overrides.setdefault("logging", {})["level"] = log_level

    return overrides


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    return value if isinstance(value, dict) else {}


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert a merged dict to the typed Config dataclass."""
    kilo_data = _section(data, "kilo")
    defaults = KiloConfig()
    timeout = kilo_data.get("terminate_timeout", defaults.terminate_timeout)
    kilo = KiloConfig(
        binary=str(kilo_data.get("binary") or defaults.binary),
        extra_args=[str(a) for a in kilo_data.get("extra_args") or []],
        env={str(k): str(v) for k, v in (kilo_data.get("env") or {}).items()},
        terminate_timeout=float(timeout) if timeout is not None else None,
    )

    session_data = _section(data, "session")
    max_event_log = session_data.get("max_event_log")
    session = SessionConfig(
        max_event_log=int(max_event_log) if max_event_log else None,
    )

    log_data = _section(data, "logging")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        file=log_data.get("file"),
    )

    extra = {k: v for k, v in data.items() if k not in _KNOWN_SECTIONS}

    return Config(kilo=kilo, session=session, logging=logging_config, extra=extra)


def load_config(session_root: str | None = None, reload: bool = False) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config (<session_root>/.kilo-acp/config.yaml)
    3. User config
    4. System config

    Only the global config (no session_root) is cached.
    """
    global _cached_config

    if _cached_config is not None and not reload and session_root is None:
        return _cached_config

    merged: dict[str, Any] = {}
    for path in get_config_paths(session_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            merged = deep_merge(merged, config_data)

    merged = deep_merge(merged, env_overrides())
    config = dict_to_config(merged)

    if session_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config (used by tests)."""
    global _cached_config
    _cached_config = None
