"""Deterministic clock for tests."""

from datetime import datetime
from zoneinfo import ZoneInfo

FIXED_MOMENT = (2026, 10, 19, 14, 3, 5)


def fixed_clock(zone: ZoneInfo) -> datetime:
    """Always 19 Oct 2026, 14:03:05 in the requested zone."""
    return datetime(*FIXED_MOMENT, tzinfo=zone)
