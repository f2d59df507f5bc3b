"""Timezone-aware clock utilities.

All wall-clock timestamps in holdover MUST be UTC-aware.  This module is
the single source of "now" so tests can inject or monkey-patch it trivially.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)
