"""Epoch-millisecond time helpers shared by the redemption core."""

from datetime import datetime, timezone
from typing import Callable

DAY_MS = 24 * 60 * 60 * 1000

Clock = Callable[[], int]


def now_ms() -> int:
    """Return the current UTC instant as epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def days_to_ms(days: float) -> int:
    """Convert a (possibly fractional) number of days to milliseconds."""
    return int(round(days * DAY_MS))
