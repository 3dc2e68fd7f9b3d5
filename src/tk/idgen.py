"""Random ID generation for tickets."""

import secrets

from tk.constants import ID_PREFIX, ID_RANDOM_LENGTH


def generate_id(prefix: str = ID_PREFIX, length: int = ID_RANDOM_LENGTH) -> str:
    """Generate a ticket ID such as ``tic-3f9a``.

    The suffix is ``length`` lowercase hex characters from the system's
    cryptographically strong random source. There is no collision check:
    writing a ticket under an existing ID overwrites it.

    Args:
        prefix: Alphabetic prefix (default: "tic")
        length: Number of hex characters in the suffix (default: 4)

    Returns:
        The new ID
    """
    suffix = secrets.token_hex((length + 1) // 2)[:length]
    return f"{prefix}-{suffix}"
