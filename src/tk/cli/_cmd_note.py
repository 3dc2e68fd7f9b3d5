"""Note command for the tk CLI."""

from __future__ import annotations

import sys

import typer

from tk.models import ticket_to_dict

from ._helpers import TICKETS_DIR_HELP, fail, get_storage
from ._output import echo_json, is_json_output


def register(app: typer.Typer) -> None:
    """Register the add-note command."""

    @app.command("add-note")
    def add_note(
        ticket_id: str = typer.Argument(..., help="Ticket ID (partial IDs allowed)"),
        text: list[str] | None = typer.Argument(
            None,
            help="Note text (read from stdin when omitted)",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        tickets_dir: str | None = typer.Option(
            None,
            "--tickets-dir",
            help=TICKETS_DIR_HELP,
        ),
    ) -> None:
        """Append a timestamped note to a ticket."""
        try:
            content = " ".join(text) if text else sys.stdin.read()
            ticket = get_storage(tickets_dir).add_note(ticket_id, content)

            if is_json_output(json_output):
                echo_json(ticket_to_dict(ticket))
            else:
                typer.echo(f"✓ Note added to {ticket.id}")

        except Exception as e:
            raise fail(e) from None
