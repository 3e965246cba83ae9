"""Root Typer application with global options."""

import typer

app = typer.Typer(
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)

schema_app = typer.Typer(no_args_is_help=True, help="Inspect configuration schemas.")
form_app = typer.Typer(no_args_is_help=True, help="Evaluate form data against a schema.")

app.add_typer(schema_app, name="schema")
app.add_typer(form_app, name="form")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug-level logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Warnings and errors only"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON to stdout"),
):
    """Evaluate declarative form schemas: dependencies, conditional rules and validation."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["json"] = json_output
