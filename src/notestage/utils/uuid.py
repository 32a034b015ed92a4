# src/notestage/utils/uuid.py
"""UUID helpers: time-ordered identifiers and validation."""

from __future__ import annotations

import uuid

from uuid_extensions import uuid7


def generate_uuid_v7() -> uuid.UUID:
    """Return a UUIDv7; identifiers made by one process sort by creation time."""
    return uuid7()


def validate_uuid(value: str) -> bool:
    """Return True if ``value`` is a UUID of version 1 through 5 or 7."""
    try:
        parsed = uuid.UUID(value)
    except (ValueError, TypeError, AttributeError):
        return False
    return parsed.version in {1, 2, 3, 4, 5, 7}
