"""Shared CLI utilities."""

import json
import logging
from pathlib import Path
from typing import Any, Dict

from rich.logging import RichHandler

from formlogic.config.settings import EngineConfig
from formlogic.errors import SchemaError
from formlogic.schemas.configuration import ConfigurationSchema
from formlogic.startup import ensure_initialized as _ensure_initialized

logger = logging.getLogger(__name__)


def ensure_initialized() -> EngineConfig:
    """Load .env and return the engine config from the environment."""
    return _ensure_initialized().config


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging with Rich handler."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = RichHandler(
        console=None,  # Use default stderr
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def load_schema_or_exit(path: Path, config: EngineConfig) -> ConfigurationSchema:
    """Load a schema, printing the error and exiting 1 on failure."""
    from formlogic.cli._console import print_err
    from formlogic.runtime.schema_loader import load_schema

    try:
        return load_schema(path, strict_type_check=config.strict_type_check)
    except SchemaError as e:
        print_err(f"{type(e).__name__}: {e}")
        raise SystemExit(1)


def load_form_data(path: Path) -> Dict[str, Any]:
    """Read form data from a JSON file; exits 1 if it is not a JSON object."""
    from formlogic.cli._console import print_err

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print_err(f"Cannot read form data from {path}: {e}")
        raise SystemExit(1)
    if not isinstance(data, dict):
        print_err(f"Form data in {path} must be a JSON object")
        raise SystemExit(1)
    return data
