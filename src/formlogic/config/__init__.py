"""Engine configuration management."""

from formlogic.config.settings import (
    EngineConfig,
    load_engine_config,
)

__all__ = [
    "EngineConfig",
    "load_engine_config",
]
