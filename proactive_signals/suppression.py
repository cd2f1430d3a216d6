#!/usr/bin/env python3
"""
Suppression Store - Dedup and throttle state for signal rules.

Each rule declares a scope:
- SESSION: ids the rule already notified about (in memory, cleared on restart)
- CALENDAR_DAY: the last date the rule fired (persisted through a flag store,
  so a restart on the same day does not re-fire)

Flag stores:
- MemoryFlagStore: plain dict, nothing survives the process
- JsonFlagStore: thread-safe JSON file, saved atomically via temp file
"""

import json
import logging
import os
import threading
from datetime import date
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Set

from proactive_signals.clock import parse_iso_date
from proactive_signals.models import SuppressionScope, SuppressionUpdate

logger = logging.getLogger("proactive.suppression")

KEY_PREFIX = "proactive.last_fired."


class MemoryFlagStore:
    """Flag store that lives only as long as the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._flags: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._flags.get(key)

    def set(self, key: str, value: str):
        self._flags[key] = value


class JsonFlagStore:
    """Thread-safe persistent key/value flags backed by a JSON file."""

    def __init__(self, state_file: Path):
        self._lock = threading.Lock()
        self._state_file = Path(state_file)
        self._flags: Dict[str, str] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._state_file

    def _load(self):
        """Load flags from disk."""
        if not self._state_file.exists():
            return
        try:
            with open(self._state_file, "r", encoding="utf-8") as f:
                saved = json.load(f)
            if not isinstance(saved, dict):
                raise ValueError("state file does not hold an object")
            self._flags = {str(k): str(v) for k, v in saved.items() if v is not None}
        except (json.JSONDecodeError, OSError, ValueError) as e:
            logger.warning(f"Could not load flag file {self._state_file}, using defaults: {e}")

    def save(self):
        """Atomically save flags to disk via temp file."""
        with self._lock:
            tmp_file = self._state_file.with_suffix(".tmp")
            try:
                self._state_file.parent.mkdir(parents=True, exist_ok=True)
                with open(tmp_file, "w", encoding="utf-8") as f:
                    json.dump(self._flags, f, indent=2, sort_keys=True)
                os.replace(str(tmp_file), str(self._state_file))
            except OSError as e:
                logger.error(f"Flag file save failed: {e}")

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._flags.get(key)

    def set(self, key: str, value: str):
        with self._lock:
            self._flags[key] = value
        self.save()


class SuppressionView:
    """Read-only view handed to rules during a cycle."""

    def __init__(self, store: "SuppressionStore"):
        self._store = store

    def notified(self, rule: str) -> FrozenSet[str]:
        return self._store.notified_ids(rule)

    def last_fired(self, rule: str) -> Optional[date]:
        return self._store.last_fired(rule)

    def already_fired_on(self, rule: str, day: date) -> bool:
        return self._store.already_fired_on(rule, day)


class SuppressionStore:
    """Unified dedup/throttle state, keyed by rule name and scope."""

    def __init__(self, flag_store=None):
        self._flags = flag_store if flag_store is not None else MemoryFlagStore()
        self._notified: Dict[str, Set[str]] = {}

    # --- Session scope ---

    def is_notified(self, rule: str, entity_id: str) -> bool:
        return entity_id in self._notified.get(rule, ())

    def mark_notified(self, rule: str, entity_id: str):
        self._notified.setdefault(rule, set()).add(entity_id)

    def notified_ids(self, rule: str) -> FrozenSet[str]:
        return frozenset(self._notified.get(rule, ()))

    # --- Calendar-day scope ---

    def last_fired(self, rule: str) -> Optional[date]:
        return parse_iso_date(self._flags.get(KEY_PREFIX + rule) or "")

    def mark_fired(self, rule: str, day: date):
        self._flags.set(KEY_PREFIX + rule, day.isoformat())

    def already_fired_on(self, rule: str, day: date) -> bool:
        return self.last_fired(rule) == day

    # --- Cycle API ---

    def view(self) -> SuppressionView:
        return SuppressionView(self)

    def apply(self, update: SuppressionUpdate):
        """Commit the state change a fired rule asked for."""
        if update.scope == SuppressionScope.SESSION:
            self.mark_notified(update.rule, update.key)
        elif update.scope == SuppressionScope.CALENDAR_DAY:
            day = parse_iso_date(update.key)
            if day is None:
                raise ValueError(f"calendar-day update for {update.rule} has bad date {update.key!r}")
            self.mark_fired(update.rule, day)
        else:
            raise ValueError(f"unknown suppression scope: {update.scope!r}")
        logger.debug(f"Suppression committed: {update.rule} [{update.scope.value}] {update.key}")
