"""Schema commands: check a schema and inspect its dependency graph."""

from pathlib import Path
from typing import Optional

import typer

from formlogic.cli._app import schema_app
from formlogic.cli._common import ensure_initialized, load_schema_or_exit, setup_logging
from formlogic.cli._console import output_result, output_table, print_err, print_ok
from formlogic.runtime.dependency_graph import build_graph


@schema_app.command("check", help="Load and validate a schema file.")
def check_cmd(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Schema file (.yaml, .yml or .json)"),
):
    config = ensure_initialized()
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])

    schema = load_schema_or_exit(path, config)
    graph = build_graph(schema)

    summary = {
        "id": schema.id,
        "name": schema.name,
        "version": schema.version,
        "sections": len(schema.sections),
        "fields": len(schema.field_ids()),
        "conditional_rules": len(schema.conditional_logic),
        "cross_field_validations": len(schema.global_validations),
        "dependency_edges": len(graph.edges()),
    }
    if ctx.obj["json"]:
        output_result(summary, ctx=ctx)
    elif not ctx.obj["quiet"]:
        print_ok(
            f"Schema '{schema.id}' is valid: {summary['fields']} fields, "
            f"{summary['conditional_rules']} rules, {summary['dependency_edges']} edges"
        )


@schema_app.command("graph", help="Print dependency edges, or the fields affected by one field.")
def graph_cmd(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Schema file (.yaml, .yml or .json)"),
    field: Optional[str] = typer.Option(None, "--field", "-f", help="Show fields affected by this field"),
):
    config = ensure_initialized()
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])

    schema = load_schema_or_exit(path, config)
    graph = build_graph(schema)

    if field is None:
        rows = [{"source": source, "target": target} for source, target in graph.edges()]
        output_table(rows, ctx=ctx, title=f"Dependencies of '{schema.id}'")
        return

    if field not in graph:
        print_err(f"Unknown field: {field}")
        raise SystemExit(1)
    output_result(
        {"field": field, "affected": graph.affected_ordered(field)},
        ctx=ctx,
        title=f"Affected by '{field}'",
    )
