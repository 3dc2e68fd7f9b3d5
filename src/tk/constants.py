"""Constants for tk."""

from __future__ import annotations

import re


def parse_tags(raw: str) -> list[str]:
    """Parse a tags string that may be comma-separated, space-separated, or both.

    Examples:
        "bug,fix"     -> ["bug", "fix"]
        "bug fix"     -> ["bug", "fix"]
        "bug, fix"    -> ["bug", "fix"]
        ""            -> []
    """
    return [tag for tag in re.split(r"[,\s]+", raw) if tag]


# Store layout
TICKETS_DIR_NAME = ".tickets"
TICKET_EXTENSION = ".md"
HEADER_DELIMITER = "---"

# Environment variable naming the store directory explicitly
ENV_TICKETS_DIR = "TICKETS_DIR"

# ID generation: "tic-" plus a short lowercase hex suffix
ID_PREFIX = "tic"
ID_RANDOM_LENGTH = 4

# Priority range accepted by the command layer
PRIORITY_MIN = 0
PRIORITY_MAX = 4

# Status indicators used in trees and listings
STATUS_SYMBOLS = {
    "open": "[ ]",
    "in_progress": "[~]",
    "closed": "[x]",
}
UNKNOWN_STATUS_SYMBOL = "[?]"

# Color mappings for CLI display
PRIORITY_COLORS = {
    0: "bright_red",
    1: "yellow",
    2: "white",
    3: "cyan",
    4: "bright_black",
}

TYPE_COLORS = {
    "task": "white",
    "bug": "bright_red",
    "feature": "bright_green",
    "chore": "bright_black",
    "epic": "bright_magenta",
}

STATUS_COLORS = {
    "open": "bright_green",
    "in_progress": "bright_blue",
    "closed": "white",
}

# Columns emitted by `tk export --format csv`
EXPORT_CSV_FIELDS = (
    "id",
    "status",
    "type",
    "priority",
    "assignee",
    "parent",
    "external_ref",
    "tags",
    "deps",
    "links",
    "created",
    "title",
    "description",
)
