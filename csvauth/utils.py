"""Timestamp helpers shared by the store and the services.

All timestamps are persisted as UTC ``YYYY-MM-DD HH:MM:SS`` strings, which
sort lexicographically in time order.
"""

from __future__ import annotations

import calendar
import time
from typing import Callable

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

Clock = Callable[[], float]


def format_timestamp(epoch: float) -> str:
    return time.strftime(TIMESTAMP_FORMAT, time.gmtime(epoch))


def parse_timestamp(value: str | None) -> float | None:
    """Parse a stored timestamp back to epoch seconds; blank or malformed gives None."""
    if not value:
        return None
    try:
        return float(calendar.timegm(time.strptime(value, TIMESTAMP_FORMAT)))
    except ValueError:
        return None
