"""
Clock and date helpers.

All day arithmetic happens in one configured timezone. Date-only values
("2024-05-01") mean local midnight in that zone; naive timestamps are taken
to be local too. Anything unparseable comes back as None so callers can
treat it as non-matching.
"""

from datetime import date, datetime, timedelta, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo


class SystemClock:
    """Wall clock in a fixed timezone."""

    def __init__(self, tz: Optional[tzinfo] = None):
        self.tz = tz or ZoneInfo("UTC")

    def __call__(self) -> datetime:
        return datetime.now(self.tz)


class FixedClock:
    """Manually advanced clock for deterministic runs."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


def parse_local_datetime(value: str, tz: tzinfo) -> Optional[datetime]:
    """Parse an ISO date or timestamp into an aware datetime in tz."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def parse_iso_date(value: str) -> Optional[date]:
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Complete days elapsed, truncated toward zero."""
    seconds = (later - earlier).total_seconds()
    return int(seconds / 86400)
