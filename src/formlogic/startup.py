"""Centralized initialization for formlogic entry points.

Loads a `.env` file from the project root (so FORMLOGIC_* settings can live
there) and builds the EngineConfig from the environment. Idempotent.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from formlogic.config.settings import EngineConfig

logger = logging.getLogger(__name__)


@dataclass
class StartupState:
    """State after initialization."""

    project_root: Path
    config: EngineConfig
    env_loaded: bool = False


# Module-level state
_state: Optional[StartupState] = None


def _find_project_root(start_path: Optional[Path] = None) -> Path:
    """Find project root by looking for pyproject.toml or .env.

    Args:
        start_path: Starting path for search. Defaults to the current directory.

    Returns:
        Project root directory.
    """
    current = start_path or Path.cwd()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists() or (parent / ".env").exists():
            return parent
    return current


def _load_env(project_root: Path) -> bool:
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        logger.debug(f"Loaded .env from {env_path}")
        return True
    logger.debug(f".env not found at {env_path}")
    return False


def ensure_initialized(start_path: Optional[Path] = None) -> StartupState:
    """Ensure the environment is loaded (idempotent).

    Returns:
        Current StartupState.
    """
    global _state

    if _state is not None:
        return _state

    project_root = _find_project_root(start_path)
    env_loaded = _load_env(project_root)
    _state = StartupState(
        project_root=project_root,
        config=EngineConfig.from_env(),
        env_loaded=env_loaded,
    )
    return _state


def reset() -> None:
    """Forget cached state (for tests)."""
    global _state
    _state = None
