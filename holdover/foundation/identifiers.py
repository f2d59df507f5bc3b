"""ID generation for sessions and channel handles."""

from __future__ import annotations

from uuid import uuid4, UUID


def new_id() -> UUID:
    """Generate a new random UUID v4 for sessions."""
    return uuid4()


def new_handle() -> str:
    """Generate an opaque channel handle."""
    return uuid4().hex
