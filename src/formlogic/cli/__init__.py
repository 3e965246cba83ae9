"""CLI package: Typer-based command-line interface.

Usage:
    python -m formlogic.cli --help
    formlogic schema check forms/signup.yaml
"""

from formlogic.cli._app import app

# Register command modules (side-effect imports)
import formlogic.cli.cmd_schema  # noqa: F401
import formlogic.cli.cmd_form  # noqa: F401

__all__ = ["app"]
