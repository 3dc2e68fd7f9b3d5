"""Exclusive whole-file locks for single ticket records.

``FcntlLock`` uses ``flock(LOCK_EX)`` and gives real mutual exclusion
between processes. ``NullLock`` is used where ``fcntl`` is unavailable
(Windows); it provides no exclusion, so ``atomic_claim`` degrades to a
plain read-check-write there.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager, contextmanager
from typing import IO, TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterator

try:
    import fcntl
except ImportError:  # pragma: no cover - Windows
    fcntl = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)


class RecordLock(Protocol):
    """Capability: hold an exclusive lock on an open record file."""

    name: str

    def hold(self, fileobj: IO[Any]) -> AbstractContextManager[None]:
        """Block until the lock is acquired, release it on exit."""
        ...


class FcntlLock:
    """Advisory ``flock`` lock, blocking until it can be acquired."""

    name = "flock"

    @contextmanager
    def hold(self, fileobj: IO[Any]) -> Iterator[None]:
        fcntl.flock(fileobj.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(fileobj.fileno(), fcntl.LOCK_UN)


class NullLock:
    """No-op lock for platforms without native file locking."""

    name = "none"

    @contextmanager
    def hold(self, fileobj: IO[Any]) -> Iterator[None]:  # noqa: ARG002
        yield


def default_lock() -> RecordLock:
    """Return the lock implementation for this platform."""
    if fcntl is None:
        logger.debug("fcntl unavailable, record locking disabled")
        return NullLock()
    return FcntlLock()
