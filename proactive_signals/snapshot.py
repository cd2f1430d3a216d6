"""
Snapshot sources - how the engine reads the host's data.

A source returns a frozen Snapshot each time get_snapshot() is called. The
host keeps mutating its live collections; the engine only ever sees copies.

Sources:
- StaticSnapshotSource: fixed records, replaceable with update()
- CallableSnapshotSource: asks a host callable for raw records each tick
- JsonFileSnapshotSource: reads the host's exported state file
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from proactive_signals.models import Snapshot

logger = logging.getLogger("proactive.snapshot")


class StaticSnapshotSource:
    """Serves one frozen snapshot until the host swaps it out."""

    def __init__(self, data: Optional[Mapping[str, Any]] = None):
        self._lock = threading.Lock()
        self._snapshot = Snapshot.from_dict(data or {})

    def update(self, data: Mapping[str, Any]):
        """Replace the served data atomically."""
        snapshot = Snapshot.from_dict(data)
        with self._lock:
            self._snapshot = snapshot

    def get_snapshot(self) -> Snapshot:
        with self._lock:
            return self._snapshot


class CallableSnapshotSource:
    """Wraps a host callable returning {"lifeItems": [...], "biometricData": [...]}."""

    def __init__(self, provider: Callable[[], Mapping[str, Any]]):
        self.provider = provider

    def get_snapshot(self) -> Snapshot:
        return Snapshot.from_dict(self.provider() or {})


class JsonFileSnapshotSource:
    """Reads the host's exported state from a JSON file.

    The file is re-read only when its mtime or size changes. A missing file yields an
    empty snapshot; an unreadable one raises so the cycle reports it.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._cached: Optional[Snapshot] = None
        self._cached_stamp: Optional[Tuple[int, int]] = None

    def get_snapshot(self) -> Snapshot:
        if not self.path.exists():
            logger.debug(f"Snapshot file {self.path} not found, using empty snapshot")
            return Snapshot()

        st = self.path.stat()
        # coarse filesystems can give two writes the same mtime
        stamp = (st.st_mtime_ns, st.st_size)
        if self._cached is not None and stamp == self._cached_stamp:
            return self._cached

        data: Dict[str, Any] = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        self._cached = Snapshot.from_dict(data)
        self._cached_stamp = stamp
        logger.info(
            f"Snapshot reloaded: {len(self._cached.life_items)} life items, "
            f"{len(self._cached.biometric_readings)} biometric readings"
        )
        return self._cached
