"""
Core Utilities.

Shared utility functions used across the package.
All modules should import utilities from this module.
"""

import secrets
from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-naive datetime.

    All datetime values in the replica are timezone-naive and assumed
    to be UTC, including timestamps received from the remote service.

    Returns:
        Current UTC time with tzinfo stripped
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC. Naive values are returned as-is."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def new_temporary_id() -> int:
    """
    Generate a temporary local note id.

    Temporary ids are always negative so they can never collide with
    server-assigned ids, which are positive.
    """
    return -(secrets.randbelow(2**31 - 1) + 1)
