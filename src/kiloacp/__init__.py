"""kilo-acp: expose the kilo CLI agent over the Agent Client Protocol."""

__version__ = "0.1.0"

# Public API
from kiloacp.bridge import (
    RequestCoordinator,
    SessionRegistry,
    SessionUpdate,
    StopReason,
    UpdateKind,
)
from kiloacp.config import Config, get_config, load_config

__all__ = [
    # Bridge
    "RequestCoordinator",
    "SessionRegistry",
    "SessionUpdate",
    "StopReason",
    "UpdateKind",
    # Config
    "Config",
    "load_config",
    "get_config",
]
