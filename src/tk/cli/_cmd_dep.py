"""Dependency and link commands for the tk CLI."""

from __future__ import annotations

import typer

from tk.deps import build_tree, detect_cycles, find_roots

from ._helpers import TICKETS_DIR_HELP, SortedGroup, fail, get_storage
from ._output import ErrorKind, echo_error, echo_json, is_json_output

dep_app = typer.Typer(
    help="Manage ticket dependencies. A ticket is blocked until its deps close.",
    no_args_is_help=True,
    cls=SortedGroup,
)


@dep_app.command("add")
def dep_add(
    ticket_id: str = typer.Argument(..., help="Ticket that gains the dependency"),
    depends_on_id: str = typer.Argument(..., help="Ticket it depends on"),
    tickets_dir: str | None = typer.Option(
        None,
        "--tickets-dir",
        help=TICKETS_DIR_HELP,
    ),
) -> None:
    """Add a dependency (refused if it would create a cycle)."""
    try:
        ticket = get_storage(tickets_dir).add_dependency(ticket_id, depends_on_id)
        typer.echo(f"✓ Added dependency: {ticket.id} -> {ticket.deps[-1]}")
    except Exception as e:
        raise fail(e) from None


@dep_app.command("remove")
def dep_remove(
    ticket_id: str = typer.Argument(..., help="Ticket with the dependency"),
    depends_on_id: str = typer.Argument(..., help="Dependency to remove"),
    tickets_dir: str | None = typer.Option(
        None,
        "--tickets-dir",
        help=TICKETS_DIR_HELP,
    ),
) -> None:
    """Remove a dependency."""
    try:
        storage = get_storage(tickets_dir)
        ticket, dep_id = storage.remove_dependency(ticket_id, depends_on_id)
        typer.echo(f"✓ Removed dependency: {ticket.id} -> {dep_id}")
    except Exception as e:
        raise fail(e) from None


dep_app.command(
    "undep",
    help="Remove a dependency (alias for 'dep remove').",
)(dep_remove)


@dep_app.command("tree")
def dep_tree(
    ticket_id: str | None = typer.Argument(
        None,
        help="Ticket to show (omit for every root ticket)",
    ),
    full: bool = typer.Option(
        False,
        "--full",
        help="Show the tree for all root tickets",
    ),
    tickets_dir: str | None = typer.Option(
        None,
        "--tickets-dir",
        help=TICKETS_DIR_HELP,
    ),
) -> None:
    """Show the dependency tree."""
    try:
        storage = get_storage(tickets_dir)
        tickets = storage.list()

        cycles = detect_cycles(tickets)
        if cycles:
            shown = " -> ".join(cycles[0])
            msg = f"dependency cycle detected ({shown}); run 'tk dep check'"
            raise ValueError(msg)

        ticket_map = {t.id: t for t in tickets}
        if full or ticket_id is None:
            roots = find_roots(tickets)
        else:
            roots = [ticket_map[storage.resolve_id(ticket_id)]]

        for root in roots:
            typer.echo(build_tree(root, ticket_map), nl=False)

    except Exception as e:
        raise fail(e) from None


@dep_app.command("check")
def dep_check(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    tickets_dir: str | None = typer.Option(
        None,
        "--tickets-dir",
        help=TICKETS_DIR_HELP,
    ),
) -> None:
    """Check the dependency graph for cycles."""
    try:
        cycles = detect_cycles(get_storage(tickets_dir).list())
    except Exception as e:
        raise fail(e) from None

    if is_json_output(json_output):
        echo_json({"cycles": cycles})
    elif not cycles:
        typer.echo("No cycles detected")
    else:
        typer.echo(f"Found {len(cycles)} cycle(s):")
        for idx, cycle in enumerate(cycles, start=1):
            typer.echo(f"  {idx}: {' -> '.join(cycle)}")

    if cycles:
        echo_error("dependency cycles detected", ErrorKind.CYCLE, cycles=cycles)
        raise typer.Exit(1)


def register(app: typer.Typer) -> None:
    """Register dep, undep, link and unlink commands."""
    app.add_typer(dep_app, name="dep")
    app.command("undep", help="Remove a dependency (alias for 'dep remove').")(
        dep_remove,
    )

    @app.command("link")
    def link_command(
        ticket_ids: list[str] = typer.Argument(
            ...,
            help="Two or more ticket IDs to link together",
        ),
        tickets_dir: str | None = typer.Option(
            None,
            "--tickets-dir",
            help=TICKETS_DIR_HELP,
        ),
    ) -> None:
        """Link tickets together (symmetric)."""
        try:
            ids = get_storage(tickets_dir).link(ticket_ids)
            typer.echo(f"✓ Linked: {', '.join(ids)}")
        except Exception as e:
            raise fail(e) from None

    @app.command("unlink")
    def unlink_command(
        ticket_id: str = typer.Argument(..., help="Ticket ID"),
        other_id: str = typer.Argument(..., help="Linked ticket ID"),
        tickets_dir: str | None = typer.Option(
            None,
            "--tickets-dir",
            help=TICKETS_DIR_HELP,
        ),
    ) -> None:
        """Remove the link between two tickets."""
        try:
            id_a, id_b = get_storage(tickets_dir).unlink(ticket_id, other_id)
            typer.echo(f"✓ Unlinked: {id_a}, {id_b}")
        except Exception as e:
            raise fail(e) from None
