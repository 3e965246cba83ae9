"""Form commands: resolve field states and validate form data."""

from pathlib import Path
from typing import Optional

import typer

from formlogic.cli._app import form_app
from formlogic.cli._common import (
    ensure_initialized,
    load_form_data,
    load_schema_or_exit,
    setup_logging,
)
from formlogic.cli._console import output_states, output_table, output_validation, print_err
from formlogic.runtime.engine import FormEngine


@form_app.command("resolve", help="Resolve per-field state for form data.")
def resolve_cmd(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Schema file (.yaml, .yml or .json)"),
    data: Path = typer.Option(..., "--data", "-d", help="Form data JSON file"),
    changed: Optional[str] = typer.Option(
        None, "--changed", help="Field that changed (resolves only affected fields after a full pass)"
    ),
):
    config = ensure_initialized()
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])

    schema = load_schema_or_exit(path, config)
    form_data = load_form_data(data)
    engine = FormEngine(schema, config)

    states = engine.resolve_field_states(form_data)
    if changed is not None:
        if changed not in engine.graph:
            print_err(f"Unknown field: {changed}")
            raise SystemExit(1)
        states = engine.resolve_field_states(form_data, changed)
    output_states(states, ctx=ctx)


@form_app.command("validate", help="Validate form data against a schema.")
def validate_cmd(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Schema file (.yaml, .yml or .json)"),
    data: Path = typer.Option(..., "--data", "-d", help="Form data JSON file"),
    trigger: str = typer.Option(
        "on_submit", "--trigger", "-t", help="on_submit (full validation), on_change or on_blur"
    ),
):
    config = ensure_initialized()
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])

    schema = load_schema_or_exit(path, config)
    form_data = load_form_data(data)
    engine = FormEngine(schema, config)

    if trigger in ("on_submit", "OnSubmit"):
        results = engine.validate_all(form_data)
        output_validation(results, ctx=ctx)
        if not results.is_valid:
            raise SystemExit(1)
        return

    try:
        errors = engine.validate_cross_field(form_data, trigger)
    except ValueError as e:
        print_err(f"Invalid trigger '{trigger}': {e}")
        raise SystemExit(2)
    rows = [{"validation": validation_id, "message": message} for validation_id, message in errors]
    output_table(rows, ctx=ctx, title=f"Cross-field errors ({trigger})")
    if errors:
        raise SystemExit(1)
