"""Tests for dependency graph algorithms."""

import pytest
from ticket_factory import make_ticket

from tk.deps import (
    build_tree,
    check_cycle,
    detect_cycles,
    find_roots,
    get_blocked,
    get_ready_work,
    topological_sort,
    would_create_cycle,
)
from tk.errors import CycleError
from tk.models import Status, Ticket

CHAIN_LENGTH = 1500


def _chain(length: int = CHAIN_LENGTH) -> list[Ticket]:
    """Build t0000 -> t0001 -> ... where each ticket depends on the next."""
    ids = [f"t{i:04d}" for i in range(length)]
    return [
        make_ticket(ticket_id, ids[i + 1 : i + 2])
        for i, ticket_id in enumerate(ids)
    ]


class TestDetectCycles:
    """Test cycle detection."""

    def test_three_cycle(self) -> None:
        """Test that a -> b -> c -> a is reported once."""
        tickets = [
            make_ticket("a", ["b"]),
            make_ticket("b", ["c"]),
            make_ticket("c", ["a"]),
        ]

        assert detect_cycles(tickets) == [["a", "b", "c"]]

    def test_self_cycle(self) -> None:
        """Test that a self-dependency is a one-element cycle."""
        assert detect_cycles([make_ticket("a", ["a"])]) == [["a"]]

    def test_acyclic(self) -> None:
        """Test that a diamond has no cycles."""
        tickets = [
            make_ticket("a", ["b", "c"]),
            make_ticket("b", ["d"]),
            make_ticket("c", ["d"]),
            make_ticket("d"),
        ]

        assert detect_cycles(tickets) == []

    def test_unknown_dependency_ignored(self) -> None:
        """Test that dependencies outside the set are skipped."""
        assert detect_cycles([make_ticket("a", ["missing"])]) == []

    def test_empty(self) -> None:
        """Test that no tickets means no cycles."""
        assert detect_cycles([]) == []

    def test_long_chain(self) -> None:
        """Test a chain deeper than the interpreter recursion limit."""
        assert detect_cycles(_chain()) == []

    def test_long_chain_closed_into_cycle(self) -> None:
        """Test that a long cycle is reported whole, in chain order."""
        tickets = _chain()
        tickets[-1].deps.append(tickets[0].id)

        assert detect_cycles(tickets) == [[t.id for t in tickets]]


class TestWouldCreateCycle:
    """Test the insertion pre-check."""

    def test_closing_edge(self) -> None:
        """Test that an edge back to the start is detected."""
        tickets = [make_ticket("a", ["b"]), make_ticket("b")]

        assert would_create_cycle(tickets, "b", "a")
        assert not would_create_cycle(tickets, "a", "c")

    def test_check_cycle_raises(self) -> None:
        """Test that check_cycle reports the cycle path."""
        tickets = [make_ticket("a", ["b"]), make_ticket("b", ["c"]), make_ticket("c")]

        with pytest.raises(CycleError, match="c -> a") as exc_info:
            check_cycle(tickets, "c", "a")

        assert exc_info.value.cycle == ["c", "a", "b"]

    def test_check_cycle_passes(self) -> None:
        """Test that a safe edge does not raise."""
        check_cycle([make_ticket("a"), make_ticket("b")], "a", "b")


class TestTopologicalSort:
    """Test dependency ordering."""

    def test_dependencies_first(self) -> None:
        """Test that every dependency precedes its dependents."""
        tickets = [
            make_ticket("a", ["b", "c"]),
            make_ticket("b", ["d"]),
            make_ticket("c", ["d"]),
            make_ticket("d"),
            make_ticket("e"),
        ]

        ordered = [t.id for t in topological_sort(tickets)]

        assert sorted(ordered) == ["a", "b", "c", "d", "e"]
        for ticket in tickets:
            for dep in ticket.deps:
                assert ordered.index(dep) < ordered.index(ticket.id)

    def test_stable_for_independent_tickets(self) -> None:
        """Test that independent tickets keep their input order."""
        tickets = [make_ticket("z"), make_ticket("y"), make_ticket("x")]

        assert [t.id for t in topological_sort(tickets)] == ["z", "y", "x"]

    def test_unknown_dependency_satisfied(self) -> None:
        """Test that deps on unknown IDs do not block ordering."""
        tickets = [make_ticket("a", ["gone"])]

        assert [t.id for t in topological_sort(tickets)] == ["a"]

    def test_cycle_raises(self) -> None:
        """Test that a cycle raises CycleError."""
        tickets = [make_ticket("a", ["b"]), make_ticket("b", ["a"]), make_ticket("c")]

        with pytest.raises(CycleError) as exc_info:
            topological_sort(tickets)

        assert set(exc_info.value.cycle) == {"a", "b"}

    def test_long_chain(self) -> None:
        """Test that a long chain is ordered deepest dependency first."""
        tickets = _chain()

        ordered = [t.id for t in topological_sort(tickets)]

        assert ordered == [t.id for t in reversed(tickets)]


class TestFindRoots:
    """Test root selection for trees."""

    def test_roots(self) -> None:
        """Test that depended-on and closed tickets are not roots."""
        tickets = [
            make_ticket("a", ["b"]),
            make_ticket("b"),
            make_ticket("c"),
            make_ticket("d", status=Status.CLOSED),
        ]

        assert [t.id for t in find_roots(tickets)] == ["a", "c"]

    def test_closed_dependent_does_not_hide_root(self) -> None:
        """Test that a dependency named only by closed tickets is a root."""
        tickets = [
            make_ticket("a", ["b"], status=Status.CLOSED),
            make_ticket("b"),
        ]

        assert [t.id for t in find_roots(tickets)] == ["b"]


class TestBuildTree:
    """Test tree rendering."""

    def test_single_node(self) -> None:
        """Test a ticket without dependencies."""
        ticket = make_ticket("tic-0001", title="Alone")

        assert build_tree(ticket, {"tic-0001": ticket}) == "[ ] tic-0001 - Alone\n"

    def test_nested_tree(self) -> None:
        """Test connectors, continuation prefixes and a missing node."""
        tickets = [
            make_ticket("tic-0001", ["tic-0002", "tic-0003"], title="Ship release"),
            make_ticket(
                "tic-0002",
                ["tic-0004"],
                status=Status.IN_PROGRESS,
                title="Write changelog",
            ),
            make_ticket("tic-0004", status=Status.CLOSED, title="Collect PR titles"),
        ]
        ticket_map = {t.id: t for t in tickets}

        assert build_tree(tickets[0], ticket_map) == (
            "[ ] tic-0001 - Ship release\n"
            "├── [~] tic-0002 - Write changelog\n"
            "│   └── [x] tic-0004 - Collect PR titles\n"
            "└── [?] tic-0003 - (not found)\n"
        )

    def test_last_child_prefix(self) -> None:
        """Test that children of the last branch are indented with spaces."""
        tickets = [
            make_ticket("a", ["b"], title="A"),
            make_ticket("b", ["c", "d"], title="B"),
            make_ticket("c", title="C"),
            make_ticket("d", title="D"),
        ]
        ticket_map = {t.id: t for t in tickets}

        assert build_tree(tickets[0], ticket_map) == (
            "[ ] a - A\n"
            "└── [ ] b - B\n"
            "    ├── [ ] c - C\n"
            "    └── [ ] d - D\n"
        )

    def test_long_chain(self) -> None:
        """Test that a chain deeper than the recursion limit renders fully."""
        tickets = _chain()
        ticket_map = {t.id: t for t in tickets}

        lines = build_tree(tickets[0], ticket_map).splitlines()

        assert len(lines) == CHAIN_LENGTH
        assert lines[-1].endswith("└── [ ] t1499 - Ticket t1499")

    def test_shared_dependency_rendered_twice(self) -> None:
        """Test that a diamond renders the shared ticket under both parents."""
        tickets = [
            make_ticket("a", ["b", "c"], title="A"),
            make_ticket("b", ["d"], title="B"),
            make_ticket("c", ["d"], title="C"),
            make_ticket("d", title="D"),
        ]
        ticket_map = {t.id: t for t in tickets}

        assert build_tree(tickets[0], ticket_map).count("d - D") == 2


class TestReadyAndBlocked:
    """Test ready work and blocked detection."""

    def test_ready_work(self) -> None:
        """Test that only unblocked, non-closed tickets are ready."""
        tickets = [
            make_ticket("a", ["b"], priority=0),
            make_ticket("b", priority=3),
            make_ticket("c", ["d"], priority=1),
            make_ticket("d", status=Status.CLOSED),
            make_ticket("e", ["missing"], priority=1),
        ]

        assert [t.id for t in get_ready_work(tickets)] == ["c", "e", "b"]

    def test_blocked(self) -> None:
        """Test that blocked tickets list their open blockers."""
        tickets = [
            make_ticket("a", ["b", "c"]),
            make_ticket("b"),
            make_ticket("c", status=Status.CLOSED),
            make_ticket("d", ["b"], status=Status.CLOSED),
        ]

        blocked = get_blocked(tickets)

        assert len(blocked) == 1
        assert blocked[0].ticket_id == "a"
        assert blocked[0].blocking_ids == ["b"]
        assert blocked[0].reason == "Blocked by 1 ticket(s)"
