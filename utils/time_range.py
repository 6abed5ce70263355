"""
Parsing of the cron --range option ("30m", "2h", "1d").
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_RANGE = "1h"

_RANGE_RE = re.compile(r"^(\d+)([hdm])$")
_UNITS = {
    "m": "minutes",
    "h": "hours",
    "d": "days",
}


def parse_time_range(value: Optional[str]) -> timedelta:
    """
    Convert "<N><h|d|m>" to a timedelta.

    Anything else falls back to one hour with a warning.
    """
    raw = (value or "").strip()
    match = _RANGE_RE.match(raw)
    if not match:
        logger.warning("invalid_time_range", value=value, fallback=DEFAULT_RANGE)
        return timedelta(hours=1)

    amount, unit = int(match.group(1)), match.group(2)
    return timedelta(**{_UNITS[unit]: amount})


def cutoff_from_range(value: Optional[str], now: Optional[datetime] = None) -> datetime:
    """UTC datetime `value` ago."""
    now = now or datetime.now(timezone.utc)
    return now - parse_time_range(value)


def to_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
