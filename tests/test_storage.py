"""Tests for directory-backed ticket storage."""

from datetime import datetime, timezone
from pathlib import Path

import pytest
from ticket_factory import make_ticket

from tk.errors import (
    AlreadyClaimedError,
    AmbiguousError,
    CycleError,
    FormatError,
    NotFoundError,
)
from tk.locking import NullLock
from tk.models import Status
from tk.storage import TicketStorage, find_tickets_dir


class TestCrud:
    """Test basic read/write/delete."""

    def test_write_and_read(self, storage: TicketStorage) -> None:
        """Test that a written ticket reads back equal."""
        ticket = make_ticket("tic-0001", description="Body")
        storage.write(ticket)

        assert storage.read("tic-0001") == ticket
        assert (storage.tickets_dir / "tic-0001.md").is_file()

    def test_write_overwrites(self, storage: TicketStorage) -> None:
        """Test that writing the same ID replaces the file."""
        storage.write(make_ticket("tic-0001", title="Old"))
        storage.write(make_ticket("tic-0001", title="New"))

        assert storage.read("tic-0001").title == "New"

    def test_read_missing(self, storage: TicketStorage) -> None:
        """Test that reading a missing ticket raises NotFoundError."""
        with pytest.raises(NotFoundError):
            storage.read("tic-none")

    @pytest.mark.parametrize("ticket_id", ["../x", "a/b", "a\\b", "..", "."])
    def test_read_rejects_path_like_id(
        self,
        storage: TicketStorage,
        ticket_id: str,
    ) -> None:
        """Test that IDs naming a file outside the directory are rejected."""
        with pytest.raises(ValueError, match="invalid ticket ID"):
            storage.read(ticket_id)

    def test_write_rejects_path_like_id(self, storage: TicketStorage) -> None:
        """Test that a traversing ID never reaches the parent directory."""
        with pytest.raises(ValueError, match="invalid ticket ID"):
            storage.write(make_ticket("../escape"))

        assert not list(storage.tickets_dir.parent.glob("escape*"))

    def test_delete(self, storage: TicketStorage) -> None:
        """Test deleting a ticket."""
        storage.write(make_ticket("tic-0001"))
        storage.delete("tic-0001")

        assert not storage.exists("tic-0001")

    def test_delete_missing(self, storage: TicketStorage) -> None:
        """Test that deleting a missing ticket raises NotFoundError."""
        with pytest.raises(NotFoundError) as exc_info:
            storage.delete("tic-none")

        assert exc_info.value.ticket_id == "tic-none"

    def test_exists(self, storage: TicketStorage) -> None:
        """Test exists for present and absent tickets."""
        storage.write(make_ticket("tic-0001"))

        assert storage.exists("tic-0001")
        assert not storage.exists("tic-0002")

    def test_ensure_dir(self, tmp_path: Path) -> None:
        """Test that ensure_dir creates nested directories."""
        storage = TicketStorage(tmp_path / "a" / "b" / ".tickets")
        storage.ensure_dir()

        assert storage.tickets_dir.is_dir()


class TestList:
    """Test listing the directory."""

    def test_list_sorted(self, storage: TicketStorage) -> None:
        """Test that tickets are listed in file name order."""
        for ticket_id in ("tic-0003", "tic-0001", "tic-0002"):
            storage.write(make_ticket(ticket_id))

        assert [t.id for t in storage.list()] == ["tic-0001", "tic-0002", "tic-0003"]
        assert storage.list_ids() == ["tic-0001", "tic-0002", "tic-0003"]

    def test_list_skips_other_entries(self, storage: TicketStorage) -> None:
        """Test that subdirectories and non-ticket files are ignored."""
        storage.write(make_ticket("tic-0001"))
        (storage.tickets_dir / "x.md").mkdir()
        (storage.tickets_dir / "y.txt").write_text("not a ticket")

        assert [t.id for t in storage.list()] == ["tic-0001"]

    def test_list_missing_dir(self, tmp_path: Path) -> None:
        """Test that a missing directory lists as empty."""
        storage = TicketStorage(tmp_path / "nowhere")

        assert storage.list() == []
        assert storage.list_ids() == []

    def test_list_malformed_file(self, storage: TicketStorage) -> None:
        """Test that a malformed ticket aborts the listing."""
        storage.write(make_ticket("tic-0001"))
        (storage.tickets_dir / "tic-bad0.md").write_text("no header here\n")

        with pytest.raises(FormatError, match="tic-bad0.md"):
            storage.list()


class TestResolveId:
    """Test partial ID resolution."""

    @pytest.fixture
    def populated(self, storage: TicketStorage) -> TicketStorage:
        """Storage holding tic-abc1, tic-abc3 and tic-def2."""
        for ticket_id in ("tic-abc1", "tic-abc3", "tic-def2"):
            storage.write(make_ticket(ticket_id))
        return storage

    def test_exact(self, populated: TicketStorage) -> None:
        """Test that a full ID resolves to itself."""
        assert populated.resolve_id("tic-abc1") == "tic-abc1"

    def test_unique_substring(self, populated: TicketStorage) -> None:
        """Test that a unique substring resolves."""
        assert populated.resolve_id("def") == "tic-def2"
        assert populated.resolve_id("c3") == "tic-abc3"

    def test_ambiguous(self, populated: TicketStorage) -> None:
        """Test that a shared substring is ambiguous."""
        with pytest.raises(AmbiguousError) as exc_info:
            populated.resolve_id("abc")

        assert exc_info.value.matches == ["tic-abc1", "tic-abc3"]
        assert "tic-abc1, tic-abc3" in str(exc_info.value)

    def test_not_found(self, populated: TicketStorage) -> None:
        """Test that an unmatched ID raises NotFoundError."""
        with pytest.raises(NotFoundError):
            populated.resolve_id("zzz")

    def test_full_id_contained_in_another_is_ambiguous(
        self,
        storage: TicketStorage,
    ) -> None:
        """Test that a full ID is ambiguous when a longer ID contains it."""
        storage.write(make_ticket("tic-abc"))
        storage.write(make_ticket("tic-abc1"))

        with pytest.raises(AmbiguousError) as exc_info:
            storage.resolve_id("tic-abc")

        assert exc_info.value.matches == ["tic-abc", "tic-abc1"]

    def test_resolve_and_read(self, populated: TicketStorage) -> None:
        """Test resolving and reading in one step."""
        assert populated.resolve_and_read("def2").id == "tic-def2"


class TestFindTicketsDir:
    """Test discovery of the .tickets directory."""

    def test_found_in_parent(self, tmp_path: Path) -> None:
        """Test that the search walks up to a parent directory."""
        (tmp_path / ".tickets").mkdir()
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)

        assert find_tickets_dir(nested) == (tmp_path / ".tickets").resolve()

    def test_nearest_wins(self, tmp_path: Path) -> None:
        """Test that the closest .tickets directory is chosen."""
        (tmp_path / ".tickets").mkdir()
        inner = tmp_path / "inner"
        (inner / ".tickets").mkdir(parents=True)

        assert find_tickets_dir(inner) == (inner / ".tickets").resolve()

    def test_file_is_not_a_store(self, tmp_path: Path) -> None:
        """Test that a regular file named .tickets is skipped."""
        (tmp_path / ".tickets").mkdir()
        inner = tmp_path / "inner"
        inner.mkdir()
        (inner / ".tickets").write_text("")

        assert find_tickets_dir(inner) == (tmp_path / ".tickets").resolve()

    def test_uses_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that the search starts from the current directory by default."""
        (tmp_path / ".tickets").mkdir()
        monkeypatch.chdir(tmp_path)

        assert find_tickets_dir().resolve() == (tmp_path / ".tickets").resolve()


class TestAtomicClaim:
    """Test claiming tickets under the record lock."""

    def test_claim_open(self, storage: TicketStorage) -> None:
        """Test that an open ticket moves to in_progress."""
        storage.write(make_ticket("tic-0001"))

        claimed = storage.atomic_claim("tic-0001")

        assert claimed.status == Status.IN_PROGRESS
        assert storage.read("tic-0001").status == Status.IN_PROGRESS

    def test_claim_keeps_other_fields(self, storage: TicketStorage) -> None:
        """Test that claiming changes nothing but the status."""
        original = make_ticket(
            "tic-0001",
            deps=["tic-0002"],
            description="Long description",
        )
        storage.write(original)

        storage.atomic_claim("tic-0001")
        reread = storage.read("tic-0001")

        reread.status = Status.OPEN
        assert reread == original

    @pytest.mark.parametrize("status", [Status.IN_PROGRESS, Status.CLOSED])
    def test_claim_rejects_non_open(
        self,
        storage: TicketStorage,
        status: Status,
    ) -> None:
        """Test that non-open tickets cannot be claimed and stay unchanged."""
        storage.write(make_ticket("tic-0001", status=status))
        path = storage.path_for("tic-0001")
        before = path.read_bytes()

        with pytest.raises(AlreadyClaimedError) as exc_info:
            storage.atomic_claim("tic-0001")

        assert exc_info.value.status == status.value
        assert path.read_bytes() == before

    def test_second_claim_fails(self, storage: TicketStorage) -> None:
        """Test that claiming twice fails the second time."""
        storage.write(make_ticket("tic-0001"))
        storage.atomic_claim("tic-0001")

        with pytest.raises(AlreadyClaimedError):
            storage.atomic_claim("tic-0001")

    def test_claim_missing(self, storage: TicketStorage) -> None:
        """Test that claiming a missing ticket raises NotFoundError."""
        with pytest.raises(NotFoundError):
            storage.atomic_claim("tic-none")

    def test_claim_with_null_lock(self, temp_tickets_dir: Path) -> None:
        """Test that claims work with the no-op lock."""
        storage = TicketStorage(temp_tickets_dir, lock=NullLock())
        storage.write(make_ticket("tic-0001"))

        assert storage.atomic_claim("tic-0001").status == Status.IN_PROGRESS


class TestStatus:
    """Test plain status updates."""

    def test_set_status(self, storage: TicketStorage) -> None:
        """Test closing and reopening by partial ID."""
        storage.write(make_ticket("tic-0001"))

        storage.set_status("0001", Status.CLOSED)
        assert storage.read("tic-0001").status == Status.CLOSED

        storage.set_status("0001", Status.OPEN)
        assert storage.read("tic-0001").status == Status.OPEN


class TestDependencies:
    """Test adding and removing dependencies."""

    def test_add_dependency(self, storage: TicketStorage) -> None:
        """Test that a dependency is appended to deps."""
        storage.write(make_ticket("tic-a"))
        storage.write(make_ticket("tic-b"))

        storage.add_dependency("tic-a", "tic-b")

        assert storage.read("tic-a").deps == ["tic-b"]

    def test_add_duplicate(self, storage: TicketStorage) -> None:
        """Test that adding an existing dependency is rejected."""
        storage.write(make_ticket("tic-a", deps=["tic-b"]))
        storage.write(make_ticket("tic-b"))

        with pytest.raises(ValueError, match="already exists"):
            storage.add_dependency("tic-a", "tic-b")

    def test_add_self_dependency(self, storage: TicketStorage) -> None:
        """Test that a ticket cannot depend on itself."""
        storage.write(make_ticket("tic-a"))

        with pytest.raises(CycleError):
            storage.add_dependency("tic-a", "tic-a")

        assert storage.read("tic-a").deps == []

    def test_add_cycle_rejected(self, storage: TicketStorage) -> None:
        """Test that an edge closing a cycle is refused and nothing is written."""
        storage.write(make_ticket("tic-a", deps=["tic-b"]))
        storage.write(make_ticket("tic-b", deps=["tic-c"]))
        storage.write(make_ticket("tic-c"))

        with pytest.raises(CycleError) as exc_info:
            storage.add_dependency("tic-c", "tic-a")

        assert exc_info.value.cycle == ["tic-c", "tic-a", "tic-b"]
        assert storage.read("tic-a").deps == ["tic-b"]
        assert storage.read("tic-b").deps == ["tic-c"]
        assert storage.read("tic-c").deps == []

    def test_remove_dependency(self, storage: TicketStorage) -> None:
        """Test removing a dependency by partial ID."""
        storage.write(make_ticket("tic-a", deps=["tic-bb"]))
        storage.write(make_ticket("tic-bb"))

        ticket, dep_id = storage.remove_dependency("tic-a", "bb")

        assert dep_id == "tic-bb"
        assert ticket.deps == []
        assert storage.read("tic-a").deps == []

    def test_remove_missing_dependency(self, storage: TicketStorage) -> None:
        """Test that removing an absent dependency raises NotFoundError."""
        storage.write(make_ticket("tic-a"))
        storage.write(make_ticket("tic-b"))

        with pytest.raises(NotFoundError):
            storage.remove_dependency("tic-a", "tic-b")


class TestLinks:
    """Test symmetric links."""

    def test_link_pair(self, storage: TicketStorage) -> None:
        """Test that linking adds the link on both sides."""
        storage.write(make_ticket("tic-a"))
        storage.write(make_ticket("tic-b"))

        storage.link(["tic-a", "tic-b"])

        assert storage.read("tic-a").links == ["tic-b"]
        assert storage.read("tic-b").links == ["tic-a"]

    def test_link_group(self, storage: TicketStorage) -> None:
        """Test that every ticket in a group links to every other."""
        for ticket_id in ("tic-a", "tic-b", "tic-c"):
            storage.write(make_ticket(ticket_id))

        storage.link(["tic-a", "tic-b", "tic-c"])
        storage.link(["tic-a", "tic-b"])

        assert storage.read("tic-a").links == ["tic-b", "tic-c"]
        assert storage.read("tic-c").links == ["tic-a", "tic-b"]

    def test_link_needs_two(self, storage: TicketStorage) -> None:
        """Test that a single ticket cannot be linked."""
        storage.write(make_ticket("tic-a"))

        with pytest.raises(ValueError, match="at least two"):
            storage.link(["tic-a"])

    def test_link_duplicate(self, storage: TicketStorage) -> None:
        """Test that the same ticket twice is rejected."""
        storage.write(make_ticket("tic-a"))

        with pytest.raises(ValueError, match="duplicate ticket ID: tic-a"):
            storage.link(["tic-a", "tic-a"])

    def test_unlink(self, storage: TicketStorage) -> None:
        """Test that unlinking removes both sides."""
        storage.write(make_ticket("tic-a", links=["tic-b"]))
        storage.write(make_ticket("tic-b", links=["tic-a"]))

        assert storage.unlink("tic-a", "tic-b") == ("tic-a", "tic-b")
        assert storage.read("tic-a").links == []
        assert storage.read("tic-b").links == []

    def test_unlink_not_linked(self, storage: TicketStorage) -> None:
        """Test that unlinking unlinked tickets raises NotFoundError."""
        storage.write(make_ticket("tic-a"))
        storage.write(make_ticket("tic-b"))

        with pytest.raises(NotFoundError, match="not linked"):
            storage.unlink("tic-a", "tic-b")


class TestNotes:
    """Test appending notes."""

    def test_add_note(self, storage: TicketStorage) -> None:
        """Test that a note is appended with its timestamp."""
        storage.write(make_ticket("tic-a"))
        when = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)

        storage.add_note("tic-a", "  First finding  ", timestamp=when)
        storage.add_note("tic-a", "Second")

        notes = storage.read("tic-a").notes
        assert [n.content for n in notes] == ["First finding", "Second"]
        assert notes[0].timestamp == when

    def test_add_empty_note(self, storage: TicketStorage) -> None:
        """Test that blank notes are rejected."""
        storage.write(make_ticket("tic-a"))

        with pytest.raises(ValueError, match="no note text"):
            storage.add_note("tic-a", "   ")
