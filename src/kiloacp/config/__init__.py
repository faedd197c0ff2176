"""Configuration management for kilo-acp.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/kilo-acp/ or %PROGRAMDATA%)
- User-level config (~/.config/kilo-acp/ or %APPDATA%)
- Project-level config (<cwd>/.kilo-acp/)
- Environment variable overrides (highest priority)

Example usage:
    from kiloacp.config import get_config

    config = get_config()
    print(config.kilo.binary)
"""

from kiloacp.config.loader import (
    deep_merge,
    get_config,
    load_config,
    reset_config,
)
from kiloacp.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from kiloacp.config.schema import (
    DEFAULT_CHILD_ENV,
    Config,
    KiloConfig,
    LoggingConfig,
    SessionConfig,
)

__all__ = [
    # Main API
    "Config",
    "load_config",
    "get_config",
    "reset_config",
    "deep_merge",
    # Schema types
    "KiloConfig",
    "SessionConfig",
    "LoggingConfig",
    "DEFAULT_CHILD_ENV",
    # Path utilities
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
