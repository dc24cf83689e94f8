"""ULID generation for primary keys."""

import ulid


def generate_ulid() -> str:
    """Return a new 26-character, lexicographically sortable ULID string."""
    return str(ulid.ULID())

