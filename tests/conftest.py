"""Shared fixtures for signal engine tests."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from proactive_signals.clock import FixedClock

UTC = ZoneInfo("UTC")
NOW = datetime(2024, 5, 10, 12, 0, tzinfo=UTC)


def iso(dt: datetime) -> str:
    return dt.isoformat()


def goal(item_id: str, due_in_days: float, updated_days_ago: float, title: str = None, **extra):
    """A goal record in the host's camelCase export format, relative to NOW."""
    record = {
        "id": item_id,
        "title": title or f"Goal {item_id}",
        "type": "goal",
        "dateISO": (NOW + timedelta(days=due_in_days)).date().isoformat(),
        "category": "growth",
        "createdAt": iso(NOW - timedelta(days=30)),
        "updatedAt": iso(NOW - timedelta(days=updated_days_ago)),
        "payload": {"details": "keep going"},
    }
    record.update(extra)
    return record


def reading(day_offset: int, sleep_hours: float, base: datetime = NOW):
    return {
        "dateISO": (base + timedelta(days=day_offset)).date().isoformat(),
        "sleepHours": sleep_hours,
        "avgHeartRate": 62,
        "steps": 8000,
    }


class RecordingSink:
    name = "recording"

    def __init__(self):
        self.calls = []

    def notify(self, message, severity="info", action=None):
        self.calls.append((message, severity, action))
        return True


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def sink():
    return RecordingSink()
