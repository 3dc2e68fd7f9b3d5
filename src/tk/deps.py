"""Dependency graph algorithms over a set of tickets.

Edges are the ``deps`` lists: ``a.deps == ["b"]`` means *a depends on b*
and stays blocked until b is closed. Every function works on a ticket set
loaded in full (usually ``TicketStorage.list()``); nothing here touches
the disk.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tk.constants import UNKNOWN_STATUS_SYMBOL
from tk.errors import CycleError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

    from tk.models import Ticket


@dataclass
class BlockedTicket:
    """A ticket that is waiting on unfinished dependencies."""

    ticket_id: str
    blocking_ids: list[str]
    reason: str


def _adjacency(tickets: Iterable[Ticket]) -> dict[str, list[str]]:
    return {t.id: list(t.deps) for t in tickets}


def _find_path(
    edges: Mapping[str, list[str]],
    start: str,
    target: str,
) -> list[str] | None:
    """Return a dependency path from ``start`` to ``target``, or None."""
    parents: dict[str, str | None] = {start: None}
    stack = [start]
    while stack:
        current = stack.pop()
        if current == target:
            path = [current]
            while (parent := parents[path[-1]]) is not None:
                path.append(parent)
            return path[::-1]
        for dep in edges.get(current, []):
            if dep not in parents:
                parents[dep] = current
                stack.append(dep)
    return None


def would_create_cycle(
    tickets: Iterable[Ticket],
    ticket_id: str,
    depends_on_id: str,
) -> bool:
    """Check if adding ``ticket_id -> depends_on_id`` would create a cycle.

    Args:
        tickets: The current ticket set
        ticket_id: The ticket that would gain the dependency
        depends_on_id: The ticket it would depend on

    Returns:
        True if ``ticket_id`` is reachable from ``depends_on_id`` once the
        proposed edge is added
    """
    edges = _adjacency(tickets)
    edges.setdefault(ticket_id, []).append(depends_on_id)
    return _find_path(edges, depends_on_id, ticket_id) is not None


def check_cycle(
    tickets: Iterable[Ticket],
    ticket_id: str,
    depends_on_id: str,
) -> None:
    """Raise CycleError if ``ticket_id -> depends_on_id`` would close a cycle."""
    edges = _adjacency(tickets)
    edges.setdefault(ticket_id, []).append(depends_on_id)
    path = _find_path(edges, depends_on_id, ticket_id)
    if path is not None:
        msg = (
            f"adding dependency would create a cycle: {ticket_id} -> {depends_on_id}"
        )
        raise CycleError(msg, cycle=[ticket_id, *path[:-1]])


def detect_cycles(tickets: Iterable[Ticket]) -> list[list[str]]:
    """Find every cycle reachable by depth-first search.

    A DFS is started from each unvisited ticket. Whenever an edge points at
    a ticket still on the search stack, the stack slice from that ticket
    to the current one is recorded. A self-dependency is a one-element
    cycle. Dependencies on tickets outside the set are ignored.

    The search keeps an explicit stack of ``(node, neighbor iterator)``
    frames, so chain length is not bounded by the recursion limit.

    Returns:
        List of cycles (each a list of ticket IDs), empty if acyclic
    """
    ticket_list = list(tickets)
    edges = _adjacency(ticket_list)
    cycles: list[list[str]] = []
    visited: set[str] = set()
    on_stack: set[str] = set()
    path: list[str] = []

    for ticket in ticket_list:
        if ticket.id in visited:
            continue

        visited.add(ticket.id)
        on_stack.add(ticket.id)
        path.append(ticket.id)
        stack: list[tuple[str, Iterator[str]]] = [
            (ticket.id, iter(edges[ticket.id])),
        ]

        while stack:
            node, neighbors = stack[-1]
            for neighbor in neighbors:
                if neighbor not in edges:
                    continue
                if neighbor not in visited:
                    visited.add(neighbor)
                    on_stack.add(neighbor)
                    path.append(neighbor)
                    stack.append((neighbor, iter(edges[neighbor])))
                    break
                if neighbor in on_stack:
                    cycles.append(path[path.index(neighbor) :])
            else:
                stack.pop()
                path.pop()
                on_stack.discard(node)

    return cycles


def topological_sort(tickets: Iterable[Ticket]) -> list[Ticket]:
    """Order tickets so every dependency comes before its dependents.

    Kahn's algorithm: a ticket's in-degree is the number of dependencies it
    holds inside the set (dependencies on unknown IDs count as satisfied).
    Ready tickets are emitted in input order, so the result is stable for a
    given input ordering.

    Raises:
        CycleError: If the dependencies contain a cycle
    """
    by_id: dict[str, Ticket] = {}
    for ticket in tickets:
        by_id.setdefault(ticket.id, ticket)

    in_degree: dict[str, int] = {}
    dependents: dict[str, list[str]] = {}
    for ticket in by_id.values():
        in_degree[ticket.id] = 0
        for dep in ticket.deps:
            if dep in by_id:
                in_degree[ticket.id] += 1
                dependents.setdefault(dep, []).append(ticket.id)

    queue = deque(tid for tid, degree in in_degree.items() if degree == 0)
    ordered: list[Ticket] = []
    while queue:
        current = queue.popleft()
        ordered.append(by_id[current])
        for dependent in dependents.get(current, []):
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    if len(ordered) != len(by_id):
        cycles = detect_cycles(by_id.values())
        msg = "cycle detected in dependencies"
        raise CycleError(msg, cycle=cycles[0] if cycles else None)

    return ordered


def find_roots(tickets: Iterable[Ticket]) -> list[Ticket]:
    """Non-closed tickets that no other non-closed ticket depends on."""
    ticket_list = list(tickets)
    depended_on = {
        dep
        for ticket in ticket_list
        if not ticket.is_closed()
        for dep in ticket.deps
        if dep != ticket.id
    }
    return [
        t for t in ticket_list if not t.is_closed() and t.id not in depended_on
    ]


def format_tree_node(ticket: Ticket) -> str:
    """Format a ticket as ``<indicator> <id> - <title>``."""
    return f"{ticket.status_indicator()} {ticket.id} - {ticket.title}"


def format_missing_node(ticket_id: str) -> str:
    """Format a dependency that is not in the ticket set."""
    return f"{UNKNOWN_STATUS_SYMBOL} {ticket_id} - (not found)"


def build_tree(root: Ticket, ticket_map: Mapping[str, Ticket]) -> str:
    """Render ``root`` and its dependencies as a box-drawing tree.

    Example::

        [ ] tic-0001 - Ship release
        ├── [~] tic-0002 - Write changelog
        │   └── [x] tic-0004 - Collect PR titles
        └── [?] tic-0003 - (not found)

    A ticket reached along several branches is rendered under each one.
    The walk uses an explicit stack, so depth is not bounded by the
    recursion limit. There is no cycle guard: on a cyclic graph the walk
    never terminates. Run ``detect_cycles`` first on untrusted input.

    Returns:
        The rendered tree, one line per node, newline-terminated
    """
    lines = [format_tree_node(root)]
    _append_children(root, ticket_map, lines)
    return "\n".join(lines) + "\n"


def _append_children(
    root: Ticket,
    ticket_map: Mapping[str, Ticket],
    lines: list[str],
) -> None:
    # Each frame is [deps, next index, prefix] for one rendered ticket.
    stack: list[list] = [[root.deps, 0, ""]]

    while stack:
        frame = stack[-1]
        deps, idx, prefix = frame
        if idx >= len(deps):
            stack.pop()
            continue
        frame[1] = idx + 1

        dep_id = deps[idx]
        is_last = idx == len(deps) - 1
        connector = "└── " if is_last else "├── "
        dep = ticket_map.get(dep_id)
        if dep is None:
            lines.append(prefix + connector + format_missing_node(dep_id))
            continue

        lines.append(prefix + connector + format_tree_node(dep))
        child_prefix = prefix + ("    " if is_last else "│   ")
        stack.append([dep.deps, 0, child_prefix])


def _open_ids(tickets: Iterable[Ticket]) -> set[str]:
    return {t.id for t in tickets if not t.is_closed()}


def get_ready_work(tickets: Iterable[Ticket]) -> list[Ticket]:
    """Get non-closed tickets with no unfinished dependencies.

    Dependencies on unknown IDs do not block.

    Returns:
        Ready tickets sorted by priority, then ID
    """
    ticket_list = list(tickets)
    open_ids = _open_ids(ticket_list)
    ready = [
        t
        for t in ticket_list
        if not t.is_closed() and not any(dep in open_ids for dep in t.deps)
    ]
    ready.sort(key=lambda t: (t.priority, t.id))
    return ready


def get_blocked(tickets: Iterable[Ticket]) -> list[BlockedTicket]:
    """Get non-closed tickets with at least one unfinished dependency."""
    ticket_list = list(tickets)
    open_ids = _open_ids(ticket_list)
    blocked: list[BlockedTicket] = []

    for ticket in ticket_list:
        if ticket.is_closed():
            continue
        blocking_ids = [dep for dep in ticket.deps if dep in open_ids]
        if blocking_ids:
            blocked.append(
                BlockedTicket(
                    ticket_id=ticket.id,
                    blocking_ids=blocking_ids,
                    reason=f"Blocked by {len(blocking_ids)} ticket(s)",
                ),
            )

    return blocked
