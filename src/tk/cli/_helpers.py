"""Shared infrastructure for tk CLI commands."""

from __future__ import annotations

import functools
import subprocess
from typing import TYPE_CHECKING

import typer
from typer.core import TyperGroup

from tk.config import load_config
from tk.storage import TicketStorage

from ._output import report_error

if TYPE_CHECKING:
    from collections.abc import Iterable

    import click

    from tk.models import Status, Ticket, TicketType

TICKETS_DIR_HELP = "Path to tickets directory (default: $TICKETS_DIR or nearest .tickets)"


class SortedGroup(TyperGroup):
    """Typer group that lists commands in alphabetical order."""

    def list_commands(self, ctx: click.Context) -> list[str]:
        """Return commands sorted alphabetically."""
        return sorted(super().list_commands(ctx))


@functools.lru_cache(maxsize=1)
def get_default_assignee() -> str:
    """Get the default assignee for new tickets from ``git config user.name``.

    Returns:
        The git user name, or an empty string if git is unavailable or unset.
    """
    try:
        result = subprocess.run(
            ["git", "config", "user.name"],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError:
        # git not installed
        return ""
    if result.returncode == 0:
        return result.stdout.strip()
    return ""


def get_storage(tickets_dir: str | None = None) -> TicketStorage:
    """Get a storage handle for the configured tickets directory."""
    config = load_config(tickets_dir)
    return TicketStorage(config.tickets_dir)


def filter_tickets(
    tickets: Iterable[Ticket],
    *,
    status: Status | None = None,
    assignee: str | None = None,
    tag: str | None = None,
    ticket_type: TicketType | None = None,
) -> list[Ticket]:
    """Keep the tickets matching every given filter; None matches anything."""
    return [
        t
        for t in tickets
        if (status is None or t.status == status)
        and (assignee is None or t.assignee == assignee)
        and (tag is None or tag in t.tags)
        and (ticket_type is None or t.type == ticket_type)
    ]


def fail(error: Exception) -> typer.Exit:
    """Report ``error`` and build the exit to raise.

    Usage: ``raise fail(e) from None``.
    """
    report_error(error)
    return typer.Exit(1)
