"""Engine configuration schema and loader.

Settings can come from defaults, environment variables
(FORMLOGIC_MAX_RESOLUTION_PASSES, ...) or a YAML file.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


class EngineConfig(BaseModel):
    """Tunables for the form logic engine.

    Attributes:
        max_resolution_passes: Pass ceiling for conditional rule resolution.
        default_cache_duration: TTL in seconds for dynamic options that
            declare no cache policy.
        cache_max_entries: Options cache size bound; oldest entry evicted.
        skip_incomplete_cross_field_on_change: Skip non-submit cross-field
            validations while any involved field is still empty.
        strict_type_check: Statically type-check expressions at schema load.
    """

    model_config = ConfigDict(extra="forbid")

    max_resolution_passes: int = Field(
        default=3,
        ge=1,
        description="Pass ceiling for conditional rule resolution",
    )
    default_cache_duration: int = Field(
        default=300,
        ge=0,
        description="Default TTL in seconds for cached dynamic options",
    )
    cache_max_entries: int = Field(
        default=1024,
        ge=1,
        description="Maximum number of cached option lists",
    )
    skip_incomplete_cross_field_on_change: bool = Field(
        default=True,
        description="Skip non-submit cross-field validations while inputs are empty",
    )
    strict_type_check: bool = Field(
        default=True,
        description="Type-check expressions against field types at schema load",
    )

    @classmethod
    def from_env(cls, prefix: str = "FORMLOGIC_") -> "EngineConfig":
        """Create config from environment variables.

        Environment variables:
            {prefix}MAX_RESOLUTION_PASSES
            {prefix}DEFAULT_CACHE_DURATION
            {prefix}CACHE_MAX_ENTRIES
            {prefix}SKIP_INCOMPLETE_CROSS_FIELD_ON_CHANGE
            {prefix}STRICT_TYPE_CHECK

        Args:
            prefix: Environment variable prefix (default: FORMLOGIC_)

        Returns:
            EngineConfig with values from environment
        """
        kwargs = {}

        for name in ("max_resolution_passes", "default_cache_duration", "cache_max_entries"):
            raw = os.getenv(f"{prefix}{name.upper()}")
            if raw:
                kwargs[name] = int(raw)

        for name in ("skip_incomplete_cross_field_on_change", "strict_type_check"):
            raw = os.getenv(f"{prefix}{name.upper()}")
            if raw:
                kwargs[name] = raw.strip().lower() in _TRUE_VALUES

        return cls(**kwargs)


def load_engine_config(config_path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """Load engine configuration from a YAML file.

    Args:
        config_path: Path to the YAML file. Missing file or None yields defaults.

    Returns:
        EngineConfig

    Raises:
        ValueError: If the file exists but contains invalid configuration.
    """
    if config_path is None:
        return EngineConfig()

    config_path = Path(config_path)
    if not config_path.exists():
        logger.debug(f"No engine config found at {config_path}, using defaults")
        return EngineConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if data is None:
            logger.warning(f"Empty engine config at {config_path}")
            return EngineConfig()

        config = EngineConfig.model_validate(data)
        logger.debug(f"Loaded engine config from {config_path}")
        return config

    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in engine config {config_path}: {e}")
    except Exception as e:
        raise ValueError(f"Failed to load engine config from {config_path}: {e}")
