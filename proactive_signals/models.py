#!/usr/bin/env python3
"""
Signal Models - Immutable records the engine reads and produces.

Domain records (life items, biometric readings) are owned by the host
application. The engine only ever sees frozen copies of them, built from
the host's camelCase JSON records via from_dict().

Notification actions are tagged descriptors (kind + entity id) rather than
callbacks, so the engine never holds references into the UI layer.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Tuple

logger = logging.getLogger("proactive.models")


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class ActionKind(str, Enum):
    OPEN_EDITOR = "open_editor"


class SuppressionScope(str, Enum):
    """How long a fired rule stays quiet for the same key."""

    SESSION = "session"            # until the process restarts
    CALENDAR_DAY = "calendar-day"  # until the local date changes


@dataclass(frozen=True)
class LifeItem:
    """A dated personal record (event, goal, ...) as exported by the host."""

    id: str
    title: str
    type: str
    date_iso: str
    category: str = ""
    updated_at: str = ""
    created_at: str = ""
    payload: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LifeItem":
        item_id = data.get("id")
        if not item_id:
            raise ValueError("life item has no id")
        payload = data.get("payload") or {}
        if not isinstance(payload, Mapping):
            payload = {}
        return cls(
            id=str(item_id),
            title=str(data.get("title", "")),
            type=str(data.get("type", "")),
            date_iso=str(data.get("dateISO", "") or ""),
            category=str(data.get("category", "") or ""),
            updated_at=str(data.get("updatedAt", "") or ""),
            created_at=str(data.get("createdAt", "") or ""),
            payload=MappingProxyType(dict(payload)),
        )

    @property
    def details(self) -> Optional[str]:
        return self.payload.get("details")


@dataclass(frozen=True)
class BiometricReading:
    """One day of wearable data."""

    date_iso: str
    sleep_hours: float
    avg_heart_rate: Optional[float] = None
    steps: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BiometricReading":
        date_iso = data.get("dateISO")
        if not date_iso:
            raise ValueError("biometric reading has no dateISO")
        sleep = data.get("sleepHours")
        if isinstance(sleep, bool) or not isinstance(sleep, (int, float)):
            raise ValueError(f"biometric reading {date_iso} has non-numeric sleepHours: {sleep!r}")
        heart_rate = data.get("avgHeartRate")
        steps = data.get("steps")
        return cls(
            date_iso=str(date_iso),
            sleep_hours=float(sleep),
            avg_heart_rate=float(heart_rate) if isinstance(heart_rate, (int, float)) else None,
            steps=int(steps) if isinstance(steps, (int, float)) else None,
        )


@dataclass(frozen=True)
class NotificationAction:
    """A single follow-up the user can take from a notification."""

    kind: ActionKind
    entity_id: str
    label: str


@dataclass(frozen=True)
class NotificationCandidate:
    rule: str
    message: str
    severity: Severity = Severity.INFO
    action: Optional[NotificationAction] = None


@dataclass(frozen=True)
class SuppressionUpdate:
    """State change a rule asks for once its candidate is delivered.

    For SESSION scope the key is the entity id; for CALENDAR_DAY scope it is
    the ISO date the rule fired on.
    """

    rule: str
    scope: SuppressionScope
    key: str


@dataclass(frozen=True)
class RuleOutcome:
    candidate: NotificationCandidate
    update: SuppressionUpdate


def _freeze(records: Iterable[Mapping[str, Any]], parser, kind: str) -> Tuple:
    frozen = []
    for index, record in enumerate(records or ()):
        if not isinstance(record, Mapping):
            logger.warning(f"Skipping {kind} #{index}: not a mapping")
            continue
        try:
            frozen.append(parser(record))
        except (ValueError, TypeError) as e:
            logger.warning(f"Skipping malformed {kind} #{index}: {e}")
    return tuple(frozen)


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time, immutable view of the host's data."""

    life_items: Tuple[LifeItem, ...] = ()
    biometric_readings: Tuple[BiometricReading, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Snapshot":
        """Build a snapshot from the host's exported state.

        Accepts {"lifeItems": [...], "biometricData": [...]}. Records that
        cannot be parsed are dropped with a warning.
        """
        return cls(
            life_items=_freeze(data.get("lifeItems", ()), LifeItem.from_dict, "life item"),
            biometric_readings=_freeze(
                data.get("biometricData", data.get("biometricReadings", ())),
                BiometricReading.from_dict,
                "biometric reading",
            ),
        )

    def has(self, input_name: str) -> bool:
        """True if the named input collection is present and non-empty."""
        return bool(getattr(self, input_name, ()))
