"""Create command for the tk CLI."""

from __future__ import annotations

import typer

from tk.constants import parse_tags
from tk.idgen import generate_id
from tk.models import new_ticket, parse_ticket_type, ticket_to_dict, validate_priority

from ._helpers import TICKETS_DIR_HELP, fail, get_default_assignee, get_storage
from ._output import echo_json, is_json_output


def register(app: typer.Typer) -> None:
    """Register the create command."""

    @app.command()
    def create(
        title: str = typer.Argument(..., help="Ticket title"),
        description: str = typer.Option(
            "",
            "--description",
            "-d",
            help="Ticket description",
        ),
        design: str = typer.Option("", "--design", help="Design notes"),
        acceptance: str = typer.Option(
            "",
            "--acceptance",
            help="Acceptance criteria",
        ),
        ticket_type: str = typer.Option(
            "task",
            "--type",
            "-t",
            help="Type: task, bug, feature, epic, chore",
        ),
        priority: int = typer.Option(
            2,
            "--priority",
            "-p",
            help="Priority 0-4 (0=highest)",
        ),
        assignee: str | None = typer.Option(
            None,
            "--assignee",
            "-a",
            help="Assignee (default: git user.name)",
        ),
        external_ref: str = typer.Option(
            "",
            "--external-ref",
            help="External reference (e.g. gh-123)",
        ),
        parent: str | None = typer.Option(None, "--parent", help="Parent ticket ID"),
        tags: str = typer.Option(
            "",
            "--tags",
            help="Tags (comma or space separated)",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        tickets_dir: str | None = typer.Option(
            None,
            "--tickets-dir",
            help=TICKETS_DIR_HELP,
        ),
    ) -> None:
        """Create a new ticket."""
        try:
            validate_priority(priority)
            resolved_type = parse_ticket_type(ticket_type)

            storage = get_storage(tickets_dir)
            resolved_parent = storage.resolve_id(parent) if parent else ""

            storage.ensure_dir()
            ticket_id = generate_id()
            while storage.exists(ticket_id):
                ticket_id = generate_id()

            ticket = new_ticket(
                ticket_id,
                title,
                type=resolved_type,
                priority=priority,
                assignee=get_default_assignee() if assignee is None else assignee,
                parent=resolved_parent,
                external_ref=external_ref,
                tags=parse_tags(tags),
                description=description.strip(),
                design=design.strip(),
                acceptance=acceptance.strip(),
            )
            storage.write(ticket)

            if is_json_output(json_output):
                echo_json(ticket_to_dict(ticket))
            else:
                typer.echo(f"✓ Created {ticket.id}: {ticket.title}")

        except Exception as e:
            raise fail(e) from None
