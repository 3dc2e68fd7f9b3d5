"""Markdown + YAML frontmatter codec for ticket files.

A ticket file looks like::

    ---
    id: tic-1a2b
    status: open
    deps: [tic-3c4d]
    created: 2024-05-01T12:00:00Z
    ---
    # Title

    Description

    ## Design

    ## Acceptance Criteria

    ## Notes

    ### 2024-05-02T08:30:00Z

    Note text

Two tolerances are deliberate: a note heading whose timestamp does not
parse is dropped together with its body, and an unrecognised ``##`` heading
is folded into the description (heading line included).
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from tk.constants import HEADER_DELIMITER
from tk.errors import FormatError, NotFoundError, StorageIOError
from tk.models import (
    Note,
    Ticket,
    format_timestamp,
    parse_status,
    parse_ticket_type,
)

logger = logging.getLogger(__name__)

_RFC3339_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$",
)

# Second-level headings with their own section; matched case-insensitively
_SECTION_HEADINGS = {
    "design": "design",
    "acceptance criteria": "acceptance",
    "notes": "notes",
}


class _HeaderDumper(yaml.SafeDumper):
    """SafeDumper for ticket headers: block mapping, inline lists, RFC 3339 times."""


def _represent_datetime(dumper: yaml.SafeDumper, value: datetime) -> yaml.Node:
    return dumper.represent_scalar(
        "tag:yaml.org,2002:timestamp",
        format_timestamp(value),
    )


def _represent_list(dumper: yaml.SafeDumper, value: list[Any]) -> yaml.Node:
    return dumper.represent_sequence("tag:yaml.org,2002:seq", value, flow_style=True)


_HeaderDumper.add_representer(datetime, _represent_datetime)
_HeaderDumper.add_representer(list, _represent_list)


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Raises:
        ValueError: If ``value`` is not an RFC 3339 date-time.
    """
    value = value.strip()
    if not _RFC3339_RE.match(value):
        msg = f"not an RFC 3339 timestamp: {value!r}"
        raise ValueError(msg)
    normalized = value.replace("t", "T", 1).replace(" ", "T", 1)
    if normalized[-1] in "Zz":
        normalized = normalized[:-1] + "+00:00"
    return datetime.fromisoformat(normalized).astimezone(timezone.utc)


def _split_header(text: str) -> tuple[str, str]:
    """Split file content into the header block and the markdown body."""
    lines = text.split("\n")
    if lines[0].rstrip("\r") != HEADER_DELIMITER:
        msg = "missing header delimiter"
        raise FormatError(msg)

    for idx in range(1, len(lines)):
        if lines[idx].rstrip("\r") == HEADER_DELIMITER:
            return "\n".join(lines[1:idx]), "\n".join(lines[idx + 1 :])

    msg = "unterminated header"
    raise FormatError(msg)


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _as_str_list(key: str, value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if not isinstance(value, list):
        msg = f"header field '{key}' must be a list"
        raise FormatError(msg)
    return [_as_str(item) for item in value]


def _as_datetime(key: str, value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    try:
        return parse_timestamp(str(value))
    except ValueError as e:
        msg = f"header field '{key}': {e}"
        raise FormatError(msg) from e


def _parse_header(header: str) -> Ticket:
    """Build a Ticket from the YAML header; body fields stay empty."""
    try:
        data = yaml.safe_load(header)
    except yaml.YAMLError as e:
        msg = f"invalid header: {e}"
        raise FormatError(msg) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = "header is not a mapping"
        raise FormatError(msg)

    priority = data.get("priority")
    if priority is None:
        priority = 0
    elif isinstance(priority, bool) or not isinstance(priority, int):
        msg = f"header field 'priority' must be an integer, got {priority!r}"
        raise FormatError(msg)

    try:
        status = parse_status(data.get("status") or "open")
        ticket_type = (
            parse_ticket_type(data["type"]) if data.get("type") else None
        )
    except ValueError as e:
        raise FormatError(str(e)) from e

    return Ticket(
        id=_as_str(data.get("id")),
        status=status,
        type=ticket_type,
        priority=priority,
        assignee=_as_str(data.get("assignee")),
        parent=_as_str(data.get("parent")),
        external_ref=_as_str(data.get("external-ref")),
        tags=_as_str_list("tags", data.get("tags")),
        deps=_as_str_list("deps", data.get("deps")),
        links=_as_str_list("links", data.get("links")),
        created=_as_datetime("created", data.get("created")),
    )


def parse_notes(content: str) -> list[Note]:
    """Parse the Notes section into timestamped entries.

    Each entry starts with ``### <RFC 3339 timestamp>``. An entry whose
    timestamp does not parse is skipped along with its body; text before
    the first entry is ignored.
    """
    notes: list[Note] = []
    current: datetime | None = None
    body: list[str] = []

    def flush() -> None:
        if current is not None:
            notes.append(Note(timestamp=current, content="\n".join(body).strip()))

    for line in content.split("\n"):
        if line.startswith("### "):
            flush()
            body = []
            heading = line[len("### ") :]
            try:
                current = parse_timestamp(heading)
            except ValueError:
                logger.debug("Skipping note with unparseable timestamp %r", heading)
                current = None
            continue
        if current is not None:
            body.append(line)

    flush()
    return notes


def _parse_body(ticket: Ticket, body: str) -> None:
    """Populate the title and text sections of ``ticket`` from markdown."""
    sections: dict[str, list[str]] = {
        "description": [],
        "design": [],
        "acceptance": [],
        "notes": [],
    }
    current = "description"
    seen_title = False

    for line in body.split("\n"):
        if not seen_title and (line.startswith("# ") or line.rstrip() == "#"):
            ticket.title = line[2:].strip()
            seen_title = True
            current = "description"
            continue

        if line.startswith("## "):
            heading = line[len("## ") :].strip()
            section = _SECTION_HEADINGS.get(heading.lower())
            if section is not None:
                current = section
                continue
            current = "description"

        sections[current].append(line)

    ticket.description = "\n".join(sections["description"]).strip()
    ticket.design = "\n".join(sections["design"]).strip()
    ticket.acceptance = "\n".join(sections["acceptance"]).strip()
    ticket.notes = parse_notes("\n".join(sections["notes"]))


def decode(data: bytes | str, source: Path | str | None = None) -> Ticket:
    """Decode ticket file content into a Ticket.

    Args:
        data: Raw file content
        source: Optional path, used only to label errors

    Returns:
        The decoded ticket

    Raises:
        FormatError: If the header delimiters are missing or the header
            cannot be interpreted
    """
    try:
        text = data.decode("utf-8") if isinstance(data, bytes) else data
        header, body = _split_header(text)
        ticket = _parse_header(header)
    except UnicodeDecodeError as e:
        msg = f"not valid UTF-8: {e}"
        raise FormatError(msg, path=source) from e
    except FormatError as e:
        if source is None or e.path is not None:
            raise
        raise FormatError(str(e), path=source) from e

    _parse_body(ticket, body)
    return ticket


def _header_mapping(ticket: Ticket) -> dict[str, Any]:
    """Header fields in file order, leaving out empty optional ones."""
    header: dict[str, Any] = {"id": ticket.id, "status": ticket.status.value}
    if ticket.type:
        header["type"] = ticket.type.value
    if ticket.priority:
        header["priority"] = ticket.priority
    if ticket.assignee:
        header["assignee"] = ticket.assignee
    if ticket.parent:
        header["parent"] = ticket.parent
    if ticket.external_ref:
        header["external-ref"] = ticket.external_ref
    if ticket.tags:
        header["tags"] = list(ticket.tags)
    if ticket.deps:
        header["deps"] = list(ticket.deps)
    if ticket.links:
        header["links"] = list(ticket.links)
    if ticket.created is not None:
        header["created"] = ticket.created
    return header


def render_body(ticket: Ticket) -> str:
    """Render the markdown body (everything after the header)."""
    parts = [f"# {ticket.title}\n\n"]

    if ticket.description:
        parts.append(f"{ticket.description}\n\n")

    if ticket.design:
        parts.append(f"## Design\n\n{ticket.design}\n\n")

    if ticket.acceptance:
        parts.append(f"## Acceptance Criteria\n\n{ticket.acceptance}\n\n")

    if ticket.notes:
        parts.append("## Notes\n\n")
        for note in ticket.notes:
            parts.append(f"### {format_timestamp(note.timestamp)}\n\n")
            parts.append(f"{note.content}\n\n")

    return "".join(parts)


def encode(ticket: Ticket) -> bytes:
    """Encode a Ticket as markdown with a YAML header."""
    header = yaml.dump(
        _header_mapping(ticket),
        Dumper=_HeaderDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=4096,
    )
    text = f"{HEADER_DELIMITER}\n{header}{HEADER_DELIMITER}\n{render_body(ticket)}"
    return text.encode("utf-8")


def read_ticket_file(path: Path | str) -> Ticket:
    """Read and decode a ticket file.

    Raises:
        NotFoundError: If the file does not exist
        StorageIOError: If the file cannot be read
        FormatError: If the content is malformed
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        msg = f"ticket not found: {path.stem}"
        raise NotFoundError(msg, ticket_id=path.stem) from None
    except OSError as e:
        msg = f"failed to read ticket file {path}: {e}"
        raise StorageIOError(msg) from e
    return decode(data, source=path)


def write_ticket_file(ticket: Ticket, path: Path | str) -> None:
    """Encode ``ticket`` and write it to ``path``, replacing any content."""
    path = Path(path)
    try:
        path.write_bytes(encode(ticket))
    except OSError as e:
        msg = f"failed to write ticket file {path}: {e}"
        raise StorageIOError(msg) from e
