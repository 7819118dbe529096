"""Timestamps used for run identifiers and result file names."""

from collections.abc import Callable
from datetime import datetime
from zoneinfo import ZoneInfo

type Clock = Callable[[ZoneInfo], datetime]


def system_clock(zone: ZoneInfo) -> datetime:
    return datetime.now(zone)


def file_timestamp(moment: datetime) -> str:
    """Format a moment as ``YYYYMMDD_HHMMSS``, the result file prefix."""
    return moment.strftime("%Y%m%d_%H%M%S")


def readable_timestamp(moment: datetime) -> str:
    """Format a moment the way Polish locale displays it."""
    return moment.strftime("%d.%m.%Y, %H:%M:%S")
