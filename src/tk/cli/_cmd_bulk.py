"""Bulk status commands for the tk CLI."""

from __future__ import annotations

import logging

import typer

from tk.errors import AlreadyClaimedError
from tk.models import Status, parse_status, ticket_to_dict

from ._helpers import TICKETS_DIR_HELP, SortedGroup, fail, filter_tickets, get_storage
from ._output import echo_json, is_json_output

logger = logging.getLogger(__name__)

bulk_app = typer.Typer(
    help="Change the status of every ticket matching the filters.",
    no_args_is_help=True,
    cls=SortedGroup,
)

_TAG_OPTION = typer.Option(None, "--tag", "-T", help="Filter by tag")
_STATUS_OPTION = typer.Option(
    None,
    "--status",
    "-s",
    help="Filter by status (open, in_progress, closed)",
)
_ASSIGNEE_OPTION = typer.Option(None, "--assignee", "-a", help="Filter by assignee")
_DRY_RUN_OPTION = typer.Option(
    False,
    "--dry-run",
    help="Show the matching tickets without changing them",
)
_JSON_OPTION = typer.Option(False, "--json", help="Output as JSON")
_TICKETS_DIR_OPTION = typer.Option(None, "--tickets-dir", help=TICKETS_DIR_HELP)


def _run_bulk(
    target: Status,
    verb: str,
    *,
    tag: str | None,
    status: str | None,
    assignee: str | None,
    dry_run: bool,
    json_output: bool,
    tickets_dir: str | None,
) -> None:
    """Move every matching ticket to ``target``.

    Tickets already in ``target`` are left alone. Starting goes through
    ``atomic_claim``, so only open tickets are started; any other status
    is reported as skipped.
    """
    as_json = is_json_output(json_output)
    try:
        storage = get_storage(tickets_dir)
        matching = filter_tickets(
            storage.list(),
            status=parse_status(status) if status else None,
            assignee=assignee,
            tag=tag,
        )

        if dry_run:
            if as_json:
                echo_json(
                    {
                        "dry_run": True,
                        "action": verb,
                        "tickets": [ticket_to_dict(t) for t in matching],
                    },
                )
            elif not matching:
                typer.echo("No tickets match the given filters")
            else:
                typer.echo(f"Dry run: would {verb} {len(matching)} ticket(s):")
                for ticket in matching:
                    typer.echo(
                        f"  {ticket.id} [{ticket.status.value}] - {ticket.title}",
                    )
            return

        updated: list[str] = []
        skipped: list[dict[str, str]] = []
        for ticket in matching:
            if ticket.status == target:
                continue
            if target == Status.IN_PROGRESS:
                try:
                    storage.atomic_claim(ticket.id)
                except AlreadyClaimedError as e:
                    skipped.append({"id": e.ticket_id, "status": e.status})
                    continue
            else:
                ticket.status = target
                storage.write(ticket)
            updated.append(ticket.id)
            logger.debug("Bulk %s: %s -> %s", verb, ticket.id, target.value)

        if as_json:
            echo_json(
                {
                    "dry_run": False,
                    "action": verb,
                    "updated": updated,
                    "skipped": skipped,
                },
            )
            return

        if not matching:
            typer.echo("No tickets match the given filters")
            return
        for ticket_id in updated:
            typer.echo(f"✓ {ticket_id} -> {target.value}")
        for entry in skipped:
            typer.echo(f"Skipped {entry['id']}: status is {entry['status']}")
        if updated:
            typer.echo(f"Updated {len(updated)} ticket(s)")
        elif not skipped:
            typer.echo(f"No tickets needed updating (all already {target.value})")

    except Exception as e:
        raise fail(e) from None


@bulk_app.command("close")
def bulk_close(
    tag: str | None = _TAG_OPTION,
    status: str | None = _STATUS_OPTION,
    assignee: str | None = _ASSIGNEE_OPTION,
    dry_run: bool = _DRY_RUN_OPTION,
    json_output: bool = _JSON_OPTION,
    tickets_dir: str | None = _TICKETS_DIR_OPTION,
) -> None:
    """Close every matching ticket."""
    _run_bulk(
        Status.CLOSED,
        "close",
        tag=tag,
        status=status,
        assignee=assignee,
        dry_run=dry_run,
        json_output=json_output,
        tickets_dir=tickets_dir,
    )


@bulk_app.command("reopen")
def bulk_reopen(
    tag: str | None = _TAG_OPTION,
    status: str | None = _STATUS_OPTION,
    assignee: str | None = _ASSIGNEE_OPTION,
    dry_run: bool = _DRY_RUN_OPTION,
    json_output: bool = _JSON_OPTION,
    tickets_dir: str | None = _TICKETS_DIR_OPTION,
) -> None:
    """Reopen every matching ticket."""
    _run_bulk(
        Status.OPEN,
        "reopen",
        tag=tag,
        status=status,
        assignee=assignee,
        dry_run=dry_run,
        json_output=json_output,
        tickets_dir=tickets_dir,
    )


@bulk_app.command("start")
def bulk_start(
    tag: str | None = _TAG_OPTION,
    status: str | None = _STATUS_OPTION,
    assignee: str | None = _ASSIGNEE_OPTION,
    dry_run: bool = _DRY_RUN_OPTION,
    json_output: bool = _JSON_OPTION,
    tickets_dir: str | None = _TICKETS_DIR_OPTION,
) -> None:
    """Claim every matching open ticket (open -> in_progress)."""
    _run_bulk(
        Status.IN_PROGRESS,
        "start",
        tag=tag,
        status=status,
        assignee=assignee,
        dry_run=dry_run,
        json_output=json_output,
        tickets_dir=tickets_dir,
    )


def register(app: typer.Typer) -> None:
    """Register the bulk command group."""
    app.add_typer(bulk_app, name="bulk")
