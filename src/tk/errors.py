"""Exception types raised by the ticket store.

- TicketError: base class for everything the store raises
- FormatError: malformed ticket file or header
- NotFoundError: missing ticket, or no store directory found
- AmbiguousError: partial ID matches more than one ticket
- AlreadyClaimedError: claim attempted on a ticket that is not open
- CycleError: a dependency cycle was found or would be introduced
- StorageIOError: any other filesystem failure

Claim conflicts and lookup failures are expected, recoverable conditions;
callers can tell them apart from infrastructure failures by type.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

__all__ = [
    "AlreadyClaimedError",
    "AmbiguousError",
    "CycleError",
    "FormatError",
    "NotFoundError",
    "StorageIOError",
    "TicketError",
]


class TicketError(Exception):
    """Base exception for ticket store errors."""


class FormatError(TicketError, ValueError):
    """Raised when ticket content cannot be decoded."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        self.path = path
        if path is not None:
            message = f"{path}: {message}"
        super().__init__(message)


class NotFoundError(TicketError, LookupError):
    """Raised when a ticket (or the store directory) does not exist."""

    def __init__(self, message: str, ticket_id: str | None = None) -> None:
        self.ticket_id = ticket_id
        super().__init__(message)


class AmbiguousError(TicketError, LookupError):
    """Raised when a partial ID matches more than one ticket.

    Attributes:
        partial: The partial ID that was looked up.
        matches: Every ticket ID that contains ``partial``.
    """

    def __init__(self, partial: str, matches: Sequence[str]) -> None:
        self.partial = partial
        self.matches = list(matches)
        super().__init__(
            f"ambiguous ID {partial} matches: {', '.join(self.matches)}",
        )


class AlreadyClaimedError(TicketError):
    """Raised when claiming a ticket whose status is not open."""

    def __init__(self, ticket_id: str, status: str) -> None:
        self.ticket_id = ticket_id
        self.status = status
        super().__init__(f"ticket {ticket_id} already claimed: status is {status}")


class CycleError(TicketError, ValueError):
    """Raised when dependencies form (or would form) a cycle."""

    def __init__(self, message: str, cycle: Sequence[str] | None = None) -> None:
        self.cycle = list(cycle) if cycle else []
        super().__init__(message)


class StorageIOError(TicketError, OSError):
    """Raised for filesystem failures other than a missing ticket."""
