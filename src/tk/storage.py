"""Directory-backed storage: one markdown file per ticket."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from tk.codec import decode, encode, read_ticket_file, write_ticket_file
from tk.constants import TICKET_EXTENSION, TICKETS_DIR_NAME
from tk.errors import (
    AlreadyClaimedError,
    AmbiguousError,
    CycleError,
    NotFoundError,
    StorageIOError,
)
from tk.locking import default_lock
from tk.models import Note, Status, Ticket, utc_now

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tk.locking import RecordLock

logger = logging.getLogger(__name__)


def find_tickets_dir(start_dir: str | Path | None = None) -> Path:
    """Find the ``.tickets`` directory by walking up parent directories.

    Args:
        start_dir: Directory to start searching from (default: current directory)

    Returns:
        Path to the first ``.tickets`` directory found

    Raises:
        NotFoundError: If the filesystem root is reached without a match
    """
    current = Path.cwd() if start_dir is None else Path(start_dir).resolve()

    while True:
        candidate = current / TICKETS_DIR_NAME
        if candidate.is_dir():
            return candidate

        parent = current.parent
        if parent == current:
            msg = f"no {TICKETS_DIR_NAME} directory found"
            raise NotFoundError(msg)
        current = parent


class TicketStorage:
    """Ticket files in a single directory.

    Nothing is cached: every read goes to disk, so separate processes
    always see each other's committed writes. Plain ``write`` calls race
    (last writer wins); only ``atomic_claim`` is serialised.
    """

    def __init__(
        self,
        tickets_dir: str | Path = TICKETS_DIR_NAME,
        lock: RecordLock | None = None,
    ) -> None:
        """Initialize storage.

        Args:
            tickets_dir: Directory holding the ticket files
            lock: Record lock used by ``atomic_claim`` (default: the
                platform's lock, see ``tk.locking.default_lock``)
        """
        self.tickets_dir = Path(tickets_dir)
        self._lock = lock if lock is not None else default_lock()

    def path_for(self, ticket_id: str) -> Path:
        """Get the file path backing ``ticket_id``.

        Raises:
            ValueError: If the ID is empty, ``.``/``..`` or contains a path
                separator, so it would name a file outside the directory
        """
        separators = {"/", "\\", os.sep, os.altsep} - {None}
        if ticket_id in ("", ".", "..") or any(s in ticket_id for s in separators):
            msg = f"invalid ticket ID: {ticket_id!r}"
            raise ValueError(msg)
        return self.tickets_dir / f"{ticket_id}{TICKET_EXTENSION}"

    def ensure_dir(self) -> None:
        """Create the tickets directory (and parents) if it does not exist."""
        try:
            self.tickets_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"failed to create tickets directory {self.tickets_dir}: {e}"
            raise StorageIOError(msg) from e

    def _ticket_files(self) -> list[Path] | None:
        """Ticket files directly inside the directory, or None if it is missing."""
        try:
            entries = sorted(os.scandir(self.tickets_dir), key=lambda e: e.name)
        except FileNotFoundError:
            return None
        except OSError as e:
            msg = f"failed to read tickets directory {self.tickets_dir}: {e}"
            raise StorageIOError(msg) from e

        return [
            Path(entry.path)
            for entry in entries
            if entry.name.endswith(TICKET_EXTENSION) and entry.is_file()
        ]

    def list_ids(self) -> list[str]:
        """Get every ticket ID in the directory, sorted."""
        files = self._ticket_files()
        if files is None:
            return []
        return [path.name[: -len(TICKET_EXTENSION)] for path in files]

    def list(self) -> list[Ticket]:
        """Load every ticket in the directory.

        Subdirectories and files without the ticket extension are skipped.
        A missing directory yields an empty list.

        Raises:
            FormatError: If any ticket file is malformed (aborts the listing)
            StorageIOError: On other filesystem errors
        """
        files = self._ticket_files()
        if files is None:
            return []
        return [read_ticket_file(path) for path in files]

    def read(self, ticket_id: str) -> Ticket:
        """Read a ticket by its full ID.

        Raises:
            NotFoundError: If no file exists for ``ticket_id``
        """
        return read_ticket_file(self.path_for(ticket_id))

    def write(self, ticket: Ticket) -> None:
        """Create or overwrite the file for ``ticket``."""
        write_ticket_file(ticket, self.path_for(ticket.id))
        logger.debug("Wrote ticket %s", ticket.id)

    def delete(self, ticket_id: str) -> None:
        """Remove a ticket file.

        Raises:
            NotFoundError: If no file exists for ``ticket_id``
        """
        try:
            self.path_for(ticket_id).unlink()
        except FileNotFoundError:
            msg = f"ticket not found: {ticket_id}"
            raise NotFoundError(msg, ticket_id=ticket_id) from None
        except OSError as e:
            msg = f"failed to delete ticket {ticket_id}: {e}"
            raise StorageIOError(msg) from e
        logger.debug("Deleted ticket %s", ticket_id)

    def exists(self, ticket_id: str) -> bool:
        """Check if a ticket file exists."""
        return self.path_for(ticket_id).is_file()

    def resolve_id(self, partial_id: str) -> str:
        """Resolve a partial ID to a full ticket ID.

        Every ID containing ``partial_id`` counts as a match, a full ID
        included, so "tic-abc" is ambiguous when "tic-abc1" also exists.

        Supports:
        - Full ID: "tic-3f9a" -> "tic-3f9a"
        - Any substring: "3f9" -> "tic-3f9a" if it is the only match

        Raises:
            NotFoundError: If nothing matches
            AmbiguousError: If more than one ID matches
        """
        matches = [
            ticket_id for ticket_id in self.list_ids() if partial_id in ticket_id
        ]
        if len(matches) == 1:
            return matches[0]
        if matches:
            raise AmbiguousError(partial_id, matches)

        msg = f"ticket not found: {partial_id}"
        raise NotFoundError(msg, ticket_id=partial_id)

    def resolve_and_read(self, partial_id: str) -> Ticket:
        """Resolve a partial ID and read the ticket."""
        return self.read(self.resolve_id(partial_id))

    def atomic_claim(self, ticket_id: str) -> Ticket:
        """Move a ticket from open to in_progress under an exclusive lock.

        The file is locked, re-read and checked while the lock is held, so
        of any number of concurrent claimers exactly one succeeds.

        Args:
            ticket_id: Full ticket ID

        Returns:
            The claimed ticket, now in_progress

        Raises:
            NotFoundError: If the ticket file does not exist
            AlreadyClaimedError: If the ticket is not open (nothing is written)
            StorageIOError: If the file cannot be opened, read or written
        """
        path = self.path_for(ticket_id)
        try:
            fileobj = path.open("r+b")
        except FileNotFoundError:
            msg = f"ticket not found: {ticket_id}"
            raise NotFoundError(msg, ticket_id=ticket_id) from None
        except OSError as e:
            msg = f"failed to open ticket file {path}: {e}"
            raise StorageIOError(msg) from e

        with fileobj, self._lock.hold(fileobj):
            try:
                ticket = decode(fileobj.read(), source=path)
            except OSError as e:
                msg = f"failed to read ticket {ticket_id}: {e}"
                raise StorageIOError(msg) from e

            if ticket.status != Status.OPEN:
                logger.debug(
                    "Claim of %s refused: status is %s",
                    ticket_id,
                    ticket.status.value,
                )
                raise AlreadyClaimedError(ticket_id, ticket.status.value)

            ticket.status = Status.IN_PROGRESS
            try:
                fileobj.seek(0)
                fileobj.truncate(0)
                fileobj.write(encode(ticket))
                fileobj.flush()
            except OSError as e:
                msg = f"failed to write ticket {ticket_id}: {e}"
                raise StorageIOError(msg) from e

        logger.debug("Claimed %s (lock: %s)", ticket_id, self._lock.name)
        return ticket

    def set_status(self, partial_id: str, status: Status) -> Ticket:
        """Set a ticket's status with a plain read-modify-write."""
        ticket = self.resolve_and_read(partial_id)
        ticket.status = status
        self.write(ticket)
        return ticket

    def add_dependency(self, issue_id: str, depends_on_id: str) -> Ticket:
        """Record that one ticket depends on another.

        Args:
            issue_id: The ticket gaining the dependency (supports partial IDs)
            depends_on_id: What it depends on (supports partial IDs)

        Returns:
            The updated ticket

        Raises:
            ValueError: If the dependency already exists
            CycleError: On self-dependency, or if the new edge would close a
                cycle (nothing is written in either case)
        """
        from tk.deps import check_cycle

        ticket_id = self.resolve_id(issue_id)
        dep_id = self.resolve_id(depends_on_id)

        if ticket_id == dep_id:
            msg = "ticket cannot depend on itself"
            raise CycleError(msg, cycle=[ticket_id])

        ticket = self.read(ticket_id)
        if dep_id in ticket.deps:
            msg = f"dependency {dep_id} already exists"
            raise ValueError(msg)

        check_cycle(self.list(), ticket_id, dep_id)

        ticket.deps.append(dep_id)
        self.write(ticket)
        return ticket

    def remove_dependency(
        self,
        issue_id: str,
        depends_on_id: str,
    ) -> tuple[Ticket, str]:
        """Remove a dependency.

        Returns:
            The updated ticket and the resolved ID of the removed dependency

        Raises:
            NotFoundError: If the dependency is not present
        """
        ticket_id = self.resolve_id(issue_id)
        dep_id = self.resolve_id(depends_on_id)
        ticket = self.read(ticket_id)

        if dep_id not in ticket.deps:
            msg = f"dependency {dep_id} not found on {ticket_id}"
            raise NotFoundError(msg, ticket_id=dep_id)

        ticket.deps = [d for d in ticket.deps if d != dep_id]
        self.write(ticket)
        return ticket, dep_id

    def link(self, partial_ids: Sequence[str]) -> list[str]:
        """Link tickets together symmetrically.

        Every ticket gains a link to every other ticket in the group.

        Returns:
            The resolved IDs

        Raises:
            ValueError: If fewer than two tickets are given or an ID repeats
        """
        ids = [self.resolve_id(partial) for partial in partial_ids]
        if len(ids) < 2:
            msg = "at least two tickets are required to link"
            raise ValueError(msg)
        if len(set(ids)) != len(ids):
            duplicate = next(i for i in ids if ids.count(i) > 1)
            msg = f"duplicate ticket ID: {duplicate}"
            raise ValueError(msg)

        for ticket_id in ids:
            ticket = self.read(ticket_id)
            for other_id in ids:
                if other_id != ticket_id and other_id not in ticket.links:
                    ticket.links.append(other_id)
            self.write(ticket)

        return ids

    def unlink(self, first_id: str, second_id: str) -> tuple[str, str]:
        """Remove the link between two tickets on both sides.

        Raises:
            NotFoundError: If the tickets are not linked
        """
        id_a = self.resolve_id(first_id)
        id_b = self.resolve_id(second_id)
        ticket_a = self.read(id_a)
        ticket_b = self.read(id_b)

        if id_b not in ticket_a.links and id_a not in ticket_b.links:
            msg = f"{id_a} and {id_b} are not linked"
            raise NotFoundError(msg, ticket_id=id_b)

        ticket_a.links = [link for link in ticket_a.links if link != id_b]
        ticket_b.links = [link for link in ticket_b.links if link != id_a]
        self.write(ticket_a)
        self.write(ticket_b)
        return id_a, id_b

    def add_note(
        self,
        partial_id: str,
        content: str,
        timestamp: datetime | None = None,
    ) -> Ticket:
        """Append a timestamped note to a ticket.

        Raises:
            ValueError: If ``content`` is empty
        """
        content = content.strip()
        if not content:
            msg = "no note text provided"
            raise ValueError(msg)

        ticket = self.resolve_and_read(partial_id)
        ticket.notes.append(Note(timestamp=timestamp or utc_now(), content=content))
        self.write(ticket)
        return ticket
