"""Data models for tk tickets using dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from tk.constants import (
    PRIORITY_MAX,
    PRIORITY_MIN,
    STATUS_SYMBOLS,
    UNKNOWN_STATUS_SYMBOL,
)


class Status(str, Enum):
    """Ticket status enumeration."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"


class TicketType(str, Enum):
    """Ticket type enumeration."""

    TASK = "task"
    BUG = "bug"
    FEATURE = "feature"
    EPIC = "epic"
    CHORE = "chore"


def utc_now() -> datetime:
    """Current UTC time truncated to whole seconds (the on-disk precision)."""
    return datetime.now(timezone.utc).replace(microsecond=0)


@dataclass
class Note:
    """A timestamped note appended to a ticket."""

    timestamp: datetime
    content: str


@dataclass
class Ticket:
    """A ticket stored as one markdown file."""

    id: str
    status: Status = Status.OPEN
    type: TicketType | None = None
    priority: int = 0  # lower is higher priority
    assignee: str = ""
    parent: str = ""  # informational only, not a graph edge
    external_ref: str = ""
    tags: list[str] = field(default_factory=list[str])
    deps: list[str] = field(default_factory=list[str])
    links: list[str] = field(default_factory=list[str])
    created: datetime | None = None

    # Body sections
    title: str = ""
    description: str = ""
    design: str = ""
    acceptance: str = ""
    notes: list[Note] = field(default_factory=list[Note])

    def is_closed(self) -> bool:
        """Check if the ticket is closed."""
        return self.status == Status.CLOSED

    def status_indicator(self) -> str:
        """Get a bracketed indicator for the status (e.g. ``[~]``)."""
        return STATUS_SYMBOLS.get(self.status.value, UNKNOWN_STATUS_SYMBOL)


def new_ticket(ticket_id: str, title: str, **fields: Any) -> Ticket:
    """Build a freshly created ticket: open, stamped with the creation time."""
    fields.setdefault("created", utc_now())
    return Ticket(id=ticket_id, title=title, status=Status.OPEN, **fields)


def parse_status(value: Any) -> Status:
    """Convert a string to a Status, raising ValueError for unknown values."""
    try:
        return Status(value)
    except ValueError:
        valid = ", ".join(s.value for s in Status)
        msg = f"invalid status: {value} (valid: {valid})"
        raise ValueError(msg) from None


def parse_ticket_type(value: Any) -> TicketType:
    """Convert a string to a TicketType, raising ValueError for unknown values."""
    try:
        return TicketType(value)
    except ValueError:
        valid = ", ".join(t.value for t in TicketType)
        msg = f"invalid type: {value} (valid: {valid})"
        raise ValueError(msg) from None


def validate_priority(priority: Any) -> None:
    """Validate that priority is in the command-layer range (0-4)."""
    if (
        not isinstance(priority, int)
        or isinstance(priority, bool)
        or not PRIORITY_MIN <= priority <= PRIORITY_MAX
    ):
        msg = (
            f"invalid priority {priority}: must be between "
            f"{PRIORITY_MIN} and {PRIORITY_MAX} ({PRIORITY_MIN}=highest)"
        )
        raise ValueError(msg)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an RFC 3339 UTC string (``2024-01-02T03:04:05Z``).

    Naive datetimes are taken to be UTC. Fractional seconds are written
    only when present.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    if value.microsecond:
        return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def ticket_to_dict(ticket: Ticket) -> dict[str, Any]:
    """Project a Ticket onto a plain dictionary for export.

    Every field is listed explicitly so the export shape follows the
    dataclass rather than whatever happens to be in the header.
    """
    return {
        "id": ticket.id,
        "status": ticket.status.value,
        "type": ticket.type.value if ticket.type else "",
        "priority": ticket.priority,
        "assignee": ticket.assignee,
        "parent": ticket.parent,
        "external_ref": ticket.external_ref,
        "tags": list(ticket.tags),
        "deps": list(ticket.deps),
        "links": list(ticket.links),
        "created": format_timestamp(ticket.created) if ticket.created else "",
        "title": ticket.title,
        "description": ticket.description,
        "design": ticket.design,
        "acceptance": ticket.acceptance,
        "notes": [
            {
                "timestamp": format_timestamp(note.timestamp),
                "content": note.content,
            }
            for note in ticket.notes
        ],
    }


def ticket_to_row(ticket: Ticket) -> dict[str, str]:
    """Flatten a Ticket into string columns for CSV export."""
    data = ticket_to_dict(ticket)
    return {
        "id": data["id"],
        "status": data["status"],
        "type": data["type"],
        "priority": str(data["priority"]),
        "assignee": data["assignee"],
        "parent": data["parent"],
        "external_ref": data["external_ref"],
        "tags": ";".join(data["tags"]),
        "deps": ";".join(data["deps"]),
        "links": ";".join(data["links"]),
        "created": data["created"],
        "title": data["title"],
        "description": data["description"],
    }
