"""Workflow and status commands for the tk CLI."""

from __future__ import annotations

import typer

from tk.errors import AlreadyClaimedError
from tk.models import Status, parse_status, ticket_to_dict

from ._formatting import format_ticket_brief
from ._helpers import TICKETS_DIR_HELP, fail, get_storage
from ._output import echo_json, is_json_output, report_error

_TICKETS_DIR_OPTION = typer.Option(None, "--tickets-dir", help=TICKETS_DIR_HELP)


def _set_status(
    ticket_id: str,
    status: Status,
    tickets_dir: str | None,
    json_output: bool,
) -> None:
    try:
        ticket = get_storage(tickets_dir).set_status(ticket_id, status)
        if is_json_output(json_output):
            echo_json(ticket_to_dict(ticket))
        else:
            typer.echo(f"Updated {ticket.id} -> {status.value}")
    except Exception as e:
        raise fail(e) from None


def register(app: typer.Typer) -> None:
    """Register workflow/status commands."""

    @app.command()
    def ready(
        limit: int = typer.Option(None, "--limit", "-l", help="Limit results"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        tickets_dir: str | None = _TICKETS_DIR_OPTION,
    ) -> None:
        """Show tickets ready to work (no unfinished dependencies)."""
        try:
            from tk.deps import get_ready_work

            ready_tickets = get_ready_work(get_storage(tickets_dir).list())
            if limit:
                ready_tickets = ready_tickets[:limit]

            if is_json_output(json_output):
                echo_json([ticket_to_dict(t) for t in ready_tickets])
            elif not ready_tickets:
                typer.echo("No ready work")
            else:
                for ticket in ready_tickets:
                    typer.echo(format_ticket_brief(ticket))

        except Exception as e:
            raise fail(e) from None

    @app.command()
    def blocked(
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        tickets_dir: str | None = _TICKETS_DIR_OPTION,
    ) -> None:
        """Show tickets waiting on unfinished dependencies."""
        try:
            from tk.deps import get_blocked

            tickets = get_storage(tickets_dir).list()
            blocked_tickets = get_blocked(tickets)

            if is_json_output(json_output):
                echo_json(
                    [
                        {
                            "ticket_id": bt.ticket_id,
                            "blocking_ids": bt.blocking_ids,
                            "reason": bt.reason,
                        }
                        for bt in blocked_tickets
                    ],
                )
            elif not blocked_tickets:
                typer.echo("No blocked tickets")
            else:
                by_id = {t.id: t for t in tickets}
                for bt in blocked_tickets:
                    typer.echo(format_ticket_brief(by_id[bt.ticket_id], bt.blocking_ids))

        except Exception as e:
            raise fail(e) from None

    @app.command()
    def start(
        ticket_id: str = typer.Argument(..., help="Ticket ID (partial IDs allowed)"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        tickets_dir: str | None = _TICKETS_DIR_OPTION,
    ) -> None:
        """Claim an open ticket (open -> in_progress) under a file lock."""
        as_json = is_json_output(json_output)
        try:
            storage = get_storage(tickets_dir)
            resolved = storage.resolve_id(ticket_id)
            ticket = storage.atomic_claim(resolved)
        except AlreadyClaimedError as e:
            report_error(e, f"cannot claim {e.ticket_id}: status is {e.status}")
            raise typer.Exit(1) from None
        except Exception as e:
            raise fail(e) from None

        if as_json:
            echo_json(ticket_to_dict(ticket))
        else:
            typer.echo(f"Claimed {ticket.id} -> in_progress")

    @app.command()
    def close(
        ticket_id: str = typer.Argument(..., help="Ticket ID (partial IDs allowed)"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        tickets_dir: str | None = _TICKETS_DIR_OPTION,
    ) -> None:
        """Close a ticket."""
        _set_status(ticket_id, Status.CLOSED, tickets_dir, json_output)

    @app.command()
    def reopen(
        ticket_id: str = typer.Argument(..., help="Ticket ID (partial IDs allowed)"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        tickets_dir: str | None = _TICKETS_DIR_OPTION,
    ) -> None:
        """Reopen a ticket."""
        _set_status(ticket_id, Status.OPEN, tickets_dir, json_output)

    @app.command("status")
    def set_status(
        ticket_id: str = typer.Argument(..., help="Ticket ID (partial IDs allowed)"),
        status: str = typer.Argument(..., help="open, in_progress or closed"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        tickets_dir: str | None = _TICKETS_DIR_OPTION,
    ) -> None:
        """Update a ticket's status."""
        try:
            new_status = parse_status(status)
        except ValueError as e:
            raise fail(e) from None
        _set_status(ticket_id, new_status, tickets_dir, json_output)
