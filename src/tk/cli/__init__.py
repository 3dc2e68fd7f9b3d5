"""tk CLI commands for file-based ticket tracking."""

from __future__ import annotations

import logging

import typer

from ._helpers import SortedGroup

app = typer.Typer(
    help="tk - minimal ticket tracking in plain markdown files, "
    "with dependencies and safe claiming",
    no_args_is_help=True,
    cls=SortedGroup,
)


@app.callback(invoke_without_command=True)
def _global_options(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON for all commands",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
) -> None:
    from ._output import set_json_flag

    set_json_flag(json_output)
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)


@app.command()
def version() -> None:
    """Show the tk version."""
    from tk._version import version as v

    typer.echo(v)


from . import (  # noqa: E402
    _cmd_bulk,
    _cmd_create,
    _cmd_dep,
    _cmd_export,
    _cmd_note,
    _cmd_read,
    _cmd_workflow,
)

for _mod in (
    _cmd_bulk,
    _cmd_create,
    _cmd_dep,
    _cmd_export,
    _cmd_note,
    _cmd_read,
    _cmd_workflow,
):
    _mod.register(app)


def main() -> None:
    """Run the tk CLI application."""
    app()
