"""Identifiers. Every primary key is a 26-character ULID string."""

import ulid


def generate_ulid() -> str:
    return str(ulid.ULID())


def is_valid_ulid(value: str) -> bool:
    """True when ``value`` decodes as a ULID; path normalisation relies on this."""
    try:
        ulid.ULID.from_str(value)
    except (ValueError, TypeError):
        return False
    return True
