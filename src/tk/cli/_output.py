"""Output mode and error reporting for the tk CLI.

``--json`` (global, or on a single command) switches both results and
errors to JSON. An error becomes one object on stderr with a message, a
``kind`` scripts can branch on, and the fields that kind carries:

- ``not_found``: ``id`` when the missing ticket is known
- ``ambiguous``: ``partial`` and every matching ID in ``matches``
- ``already_claimed``: ``id`` and its current ``status``
- ``cycle``: the offending ``cycle`` (or ``cycles``)
- ``format``: ``path`` of the malformed file when known
- ``io``, ``invalid``, ``error``: the message only
"""

from __future__ import annotations

import sys
from enum import Enum
from typing import Any

import orjson
import typer

from tk.errors import (
    AlreadyClaimedError,
    AmbiguousError,
    CycleError,
    FormatError,
    NotFoundError,
    StorageIOError,
    TicketError,
)

_global_json: bool = False


class ErrorKind(str, Enum):
    """Machine-readable error categories reported in JSON mode."""

    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"
    ALREADY_CLAIMED = "already_claimed"
    CYCLE = "cycle"
    FORMAT = "format"
    IO = "io"
    INVALID = "invalid"
    ERROR = "error"


def set_json_flag(value: bool) -> None:
    """Set the global JSON output flag."""
    global _global_json  # noqa: PLW0603
    _global_json = value


def is_json_output(local_flag: bool = False) -> bool:
    """Check if JSON output is enabled by the global or the command flag.

    A set command flag is remembered globally, so errors raised later in
    the same command are reported as JSON too.
    """
    global _global_json  # noqa: PLW0603
    if local_flag:
        _global_json = True
    return _global_json


def echo_json(data: object) -> None:
    """Write ``data`` to stdout as a single JSON document."""
    typer.echo(orjson.dumps(data).decode())


def echo_error(
    message: str,
    kind: ErrorKind = ErrorKind.ERROR,
    **details: object,
) -> None:
    """Write an error to stderr.

    Plain mode prints ``Error: <message>``; JSON mode prints
    ``{"error": <message>, "kind": <kind>, **details}``.
    """
    if _global_json:
        payload = {"error": message, "kind": kind.value, **details}
        sys.stderr.write(orjson.dumps(payload).decode() + "\n")
    else:
        typer.echo(f"Error: {message}", err=True)


def classify_error(error: Exception) -> tuple[ErrorKind, dict[str, Any]]:
    """Map an exception to its error kind and the details it reports."""
    if isinstance(error, NotFoundError):
        details = {"id": error.ticket_id} if error.ticket_id else {}
        return ErrorKind.NOT_FOUND, details
    if isinstance(error, AmbiguousError):
        return ErrorKind.AMBIGUOUS, {
            "partial": error.partial,
            "matches": error.matches,
        }
    if isinstance(error, AlreadyClaimedError):
        return ErrorKind.ALREADY_CLAIMED, {
            "id": error.ticket_id,
            "status": error.status,
        }
    if isinstance(error, CycleError):
        return ErrorKind.CYCLE, {"cycle": error.cycle}
    if isinstance(error, FormatError):
        details = {"path": str(error.path)} if error.path is not None else {}
        return ErrorKind.FORMAT, details
    if isinstance(error, StorageIOError):
        return ErrorKind.IO, {}
    if isinstance(error, ValueError):
        return ErrorKind.INVALID, {}
    return ErrorKind.ERROR, {}


def report_error(error: Exception, message: str | None = None) -> None:
    """Write ``error`` to stderr with its kind and details.

    Args:
        error: The exception to report
        message: Text to show instead of the exception's own message
    """
    if message is None:
        if isinstance(error, (TicketError, ValueError)):
            message = str(error)
        else:
            message = f"{type(error).__name__}: {error}"
    kind, details = classify_error(error)
    echo_error(message, kind, **details)
