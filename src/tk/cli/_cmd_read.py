"""Read-only commands (show, list, closed) for the tk CLI."""

from __future__ import annotations

import typer

from tk.models import Status, parse_status, parse_ticket_type, ticket_to_dict

from ._formatting import format_ticket_brief, format_ticket_detail, format_ticket_table
from ._helpers import TICKETS_DIR_HELP, fail, filter_tickets, get_storage
from ._output import echo_json, is_json_output

_SORT_FIELDS = ("priority", "created", "status", "title")


def register(app: typer.Typer) -> None:
    """Register show, list and closed commands."""

    @app.command()
    def show(
        ticket_id: str = typer.Argument(..., help="Ticket ID (partial IDs allowed)"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        tickets_dir: str | None = typer.Option(
            None,
            "--tickets-dir",
            help=TICKETS_DIR_HELP,
        ),
    ) -> None:
        """Display a ticket."""
        try:
            storage = get_storage(tickets_dir)
            ticket = storage.resolve_and_read(ticket_id)

            if is_json_output(json_output):
                echo_json(ticket_to_dict(ticket))
            else:
                typer.echo(format_ticket_detail(ticket, storage.list()))

        except Exception as e:
            raise fail(e) from None

    @app.command("list")
    def list_tickets(
        status: str | None = typer.Option(
            None,
            "--status",
            "-s",
            help="Filter by status (open, in_progress, closed)",
        ),
        assignee: str | None = typer.Option(
            None,
            "--assignee",
            "-a",
            help="Filter by assignee",
        ),
        tag: str | None = typer.Option(None, "--tag", "-T", help="Filter by tag"),
        ticket_type: str | None = typer.Option(
            None,
            "--type",
            "-t",
            help="Filter by type",
        ),
        sort_by: str = typer.Option(
            "priority",
            "--sort",
            help=f"Sort by: {', '.join(_SORT_FIELDS)}",
        ),
        reverse: bool = typer.Option(False, "--reverse", "-r", help="Reverse order"),
        table: bool = typer.Option(False, "--table", help="Render as a table"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        tickets_dir: str | None = typer.Option(
            None,
            "--tickets-dir",
            help=TICKETS_DIR_HELP,
        ),
    ) -> None:
        """List tickets with optional filters."""
        try:
            if sort_by not in _SORT_FIELDS:
                msg = f"invalid sort field: {sort_by} (valid: {', '.join(_SORT_FIELDS)})"
                raise ValueError(msg)
            wanted_status = parse_status(status) if status else None
            wanted_type = parse_ticket_type(ticket_type) if ticket_type else None

            tickets = filter_tickets(
                get_storage(tickets_dir).list(),
                status=wanted_status,
                assignee=assignee,
                tag=tag,
                ticket_type=wanted_type,
            )

            if sort_by == "created":
                tickets.sort(key=lambda t: (t.created is None, t.created or 0, t.id))
            elif sort_by == "status":
                tickets.sort(key=lambda t: (t.status.value, t.priority, t.id))
            elif sort_by == "title":
                tickets.sort(key=lambda t: (t.title.lower(), t.id))
            else:
                tickets.sort(key=lambda t: (t.priority, t.id))
            if reverse:
                tickets.reverse()

            if is_json_output(json_output):
                echo_json([ticket_to_dict(t) for t in tickets])
            elif not tickets:
                typer.echo("No tickets found")
            elif table:
                typer.echo(format_ticket_table(tickets))
            else:
                for ticket in tickets:
                    typer.echo(format_ticket_brief(ticket))

        except Exception as e:
            raise fail(e) from None

    @app.command()
    def closed(
        limit: int = typer.Option(
            20,
            "--limit",
            help="Show at most this many tickets (0 for all)",
        ),
        assignee: str | None = typer.Option(
            None,
            "--assignee",
            "-a",
            help="Filter by assignee",
        ),
        tag: str | None = typer.Option(None, "--tag", "-T", help="Filter by tag"),
        ticket_type: str | None = typer.Option(
            None,
            "--type",
            "-t",
            help="Filter by type",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        tickets_dir: str | None = typer.Option(
            None,
            "--tickets-dir",
            help=TICKETS_DIR_HELP,
        ),
    ) -> None:
        """List closed tickets, most recently created first."""
        try:
            if limit < 0:
                msg = f"invalid limit: {limit} (must be 0 or more)"
                raise ValueError(msg)

            tickets = filter_tickets(
                get_storage(tickets_dir).list(),
                status=Status.CLOSED,
                ticket_type=parse_ticket_type(ticket_type) if ticket_type else None,
                assignee=assignee,
                tag=tag,
            )
            # Tickets without a creation time go last.
            tickets.sort(
                key=lambda t: (
                    t.created is not None,
                    t.created.timestamp() if t.created else 0.0,
                    t.id,
                ),
                reverse=True,
            )
            if limit:
                tickets = tickets[:limit]

            if is_json_output(json_output):
                echo_json([ticket_to_dict(t) for t in tickets])
            elif not tickets:
                typer.echo("No closed tickets")
            else:
                for ticket in tickets:
                    typer.echo(format_ticket_brief(ticket))

        except Exception as e:
            raise fail(e) from None
