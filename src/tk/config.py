"""Configuration for tk: where the tickets directory lives.

Precedence:
1. An explicit directory (``--tickets-dir``)
2. The ``TICKETS_DIR`` environment variable
3. The nearest ``.tickets`` directory in the current or a parent directory
4. ``.tickets`` under the current directory (created on first write)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from tk.constants import ENV_TICKETS_DIR, TICKETS_DIR_NAME
from tk.errors import NotFoundError
from tk.storage import find_tickets_dir


@dataclass(frozen=True)
class Config:
    """Resolved configuration."""

    tickets_dir: Path
    explicit: bool  # True when set by flag or environment, not discovered


def load_config(
    tickets_dir: str | Path | None = None,
    environ: dict[str, str] | None = None,
    start_dir: str | Path | None = None,
) -> Config:
    """Resolve the tickets directory.

    Args:
        tickets_dir: Explicit directory, wins over everything else
        environ: Environment mapping (default: ``os.environ``)
        start_dir: Where discovery starts (default: current directory)

    Returns:
        The resolved configuration
    """
    if tickets_dir:
        return Config(tickets_dir=Path(tickets_dir), explicit=True)

    env = os.environ if environ is None else environ
    from_env = env.get(ENV_TICKETS_DIR, "").strip()
    if from_env:
        return Config(tickets_dir=Path(from_env), explicit=True)

    try:
        return Config(tickets_dir=find_tickets_dir(start_dir), explicit=False)
    except NotFoundError:
        base = Path.cwd() if start_dir is None else Path(start_dir)
        return Config(tickets_dir=base / TICKETS_DIR_NAME, explicit=False)
