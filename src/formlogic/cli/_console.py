"""Rich console singleton and output helpers."""

import json
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from formlogic.schemas.results import ResolvedFieldState, ValidationResults

# Status to stderr so it doesn't pollute piped JSON output
console = Console(stderr=True)

# Data output to stdout (pipeable to jq)
stdout_console = Console()


def print_ok(msg: str) -> None:
    console.print(f"[green]✓[/green] {msg}")


def print_err(msg: str) -> None:
    console.print(f"[red]✗[/red] {msg}")


def print_warn(msg: str) -> None:
    console.print(f"[yellow]![/yellow] {msg}")


def output_result(data: Dict[str, Any], *, ctx: typer.Context, title: str = "") -> None:
    """Print a result as JSON (stdout) or a Rich panel (stderr)."""
    if ctx.obj.get("json"):
        stdout_console.print_json(data=data)
        return
    formatted = json.dumps(data, indent=2, ensure_ascii=False, default=str)
    if title:
        console.print(Panel(formatted, title=title, border_style="blue"))
    else:
        console.print(formatted)


def output_table(
    rows: List[Dict[str, Any]],
    *,
    ctx: typer.Context,
    title: str = "",
    columns: Optional[List[str]] = None,
) -> None:
    """Print rows as a JSON array (stdout) or a Rich table (stderr)."""
    if ctx.obj.get("json"):
        stdout_console.print_json(data=rows)
        return

    if not rows:
        console.print("[dim]No data[/dim]")
        return

    cols = columns or list(rows[0].keys())
    table = Table(title=title, show_lines=False)
    for col in cols:
        table.add_column(col)
    for row in rows:
        table.add_row(*[_cell(row.get(c, "")) for c in cols])
    console.print(table)


def _cell(value: Any) -> str:
    if isinstance(value, bool):
        return "[green]yes[/green]" if value else "[red]no[/red]"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return "" if value is None else str(value)


def output_states(states: Dict[str, ResolvedFieldState], *, ctx: typer.Context) -> None:
    """Render resolved field states."""
    rows = []
    for state in states.values():
        row = state.model_dump(mode="json")
        if not ctx.obj.get("json"):
            row["value_override"] = state.value_override if state.has_value_override else ""
            row["options_override"] = (
                [o.value for o in state.options_override] if state.options_override is not None else ""
            )
        rows.append(row)
    output_table(
        rows,
        ctx=ctx,
        title="Field states",
        columns=[
            "field_id",
            "is_visible",
            "is_enabled",
            "value_override",
            "options_override",
            "error_override",
            "applied_rules",
        ],
    )


def output_validation(results: ValidationResults, *, ctx: typer.Context) -> None:
    """Render validation results as JSON or a panel."""
    if ctx.obj.get("json"):
        stdout_console.print_json(data=results.model_dump(mode="json"))
        return

    lines = []
    for field_id, messages in results.field_errors.items():
        for message in messages:
            lines.append(f"[red]{field_id}[/red]: {message}")
    for message in results.global_errors:
        lines.append(f"[red]form[/red]: {message}")
    for message in results.warnings:
        lines.append(f"[yellow]warning[/yellow]: {message}")

    status = "[green]valid[/green]" if results.is_valid else "[red]invalid[/red]"
    body = "\n".join(lines) if lines else "[dim]No errors[/dim]"
    console.print(Panel(body, title=f"Validation: {status}", border_style="blue"))
