"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from tk.storage import TicketStorage


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a TICKETS_DIR from the developer's shell out of the tests."""
    monkeypatch.delenv("TICKETS_DIR", raising=False)


@pytest.fixture
def temp_tickets_dir(tmp_path: Path) -> Path:
    """Create a temporary .tickets directory for testing."""
    tickets_path = tmp_path / ".tickets"
    tickets_path.mkdir()
    return tickets_path


@pytest.fixture
def storage(temp_tickets_dir: Path) -> TicketStorage:
    """Create a storage handle on the temporary .tickets directory."""
    return TicketStorage(temp_tickets_dir)
