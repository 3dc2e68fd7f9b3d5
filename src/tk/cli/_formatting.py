"""Display and formatting functions for the tk CLI."""

from __future__ import annotations

from io import StringIO
from typing import TYPE_CHECKING

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tk.codec import encode
from tk.constants import PRIORITY_COLORS, STATUS_COLORS, TYPE_COLORS

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tk.models import Ticket


def format_ticket_brief(ticket: Ticket, blocked_by: Sequence[str] = ()) -> str:
    """Format a ticket for brief display with color coding.

    Args:
        ticket: The ticket to format
        blocked_by: Unfinished dependencies, shown in red when present

    Returns:
        Status indicator, priority, ID, title, type and tags on one line
    """
    priority_color = PRIORITY_COLORS.get(ticket.priority, "white")
    priority_str = typer.style(f"[P{ticket.priority}]", fg=priority_color, bold=True)

    type_str = ""
    if ticket.type:
        type_color = TYPE_COLORS.get(ticket.type.value, "white")
        type_str = " " + typer.style(f"[{ticket.type.value}]", fg=type_color)

    tags_str = ""
    if ticket.tags:
        tags_str = " " + typer.style(f"[{', '.join(ticket.tags)}]", fg="cyan")

    assignee_str = ""
    if ticket.assignee:
        assignee_str = " " + typer.style(f"@{ticket.assignee}", fg="bright_black")

    blocked_str = ""
    if blocked_by:
        blocked_str = " " + typer.style(
            f"[blocked by: {', '.join(blocked_by)}]",
            fg="red",
        )

    base = f"{ticket.status_indicator()} {priority_str} {ticket.id}: {ticket.title}"
    return f"{base}{type_str}{tags_str}{assignee_str}{blocked_str}"


def format_ticket_table(tickets: Sequence[Ticket]) -> str:
    """Format tickets as a table.

    Returns:
        Formatted table string (rendered by Rich), empty for no tickets
    """
    if not tickets:
        return ""

    table = Table(
        show_header=True,
        header_style="bold",
        box=box.ROUNDED,
        pad_edge=False,
        show_edge=False,
    )

    table.add_column("ID", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Type", no_wrap=True)
    table.add_column("Pri", width=3, no_wrap=True)
    table.add_column("Assignee", no_wrap=True)
    table.add_column("Title", overflow="fold")

    for ticket in tickets:
        status = ticket.status.value
        ticket_type = ticket.type.value if ticket.type else ""
        priority_color = f"bold {PRIORITY_COLORS.get(ticket.priority, 'white')}"
        table.add_row(
            ticket.id,
            f"[{STATUS_COLORS.get(status, 'white')}]{status}[/]",
            f"[{TYPE_COLORS.get(ticket_type, 'white')}]{ticket_type}[/]"
            if ticket_type
            else "",
            f"[{priority_color}]{ticket.priority}[/]",
            escape(ticket.assignee),
            escape(ticket.title),
        )

    string_io = StringIO()
    console = Console(file=string_io, force_terminal=True, width=None)
    console.print(table)

    return string_io.getvalue().rstrip()


def format_ticket_detail(ticket: Ticket, all_tickets: Sequence[Ticket]) -> str:
    """Render a ticket's file content followed by its relationships.

    Relationships are derived from the whole ticket set: what this ticket
    is blocking (tickets depending on it) and its children (tickets naming
    it as parent).
    """
    output = encode(ticket).decode("utf-8")

    blocking = [t.id for t in all_tickets if t.id != ticket.id and ticket.id in t.deps]
    children = [t.id for t in all_tickets if t.parent == ticket.id]

    lines: list[str] = []
    if ticket.deps:
        lines.append(f"Blockers: {', '.join(ticket.deps)}")
    if blocking:
        lines.append(f"Blocking: {', '.join(blocking)}")
    if children:
        lines.append(f"Children: {', '.join(children)}")
    if ticket.links:
        lines.append(f"Links: {', '.join(ticket.links)}")

    if not lines:
        return output.rstrip("\n")
    return output.rstrip("\n") + "\n---\n" + "\n".join(lines)
