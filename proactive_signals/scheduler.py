#!/usr/bin/env python3
"""
Signal Engine - Periodic evaluation loop for proactive notifications.

Each cycle:
1. Take one snapshot from the source
2. Run the rule set (in order, first outcome wins)
3. Commit the winning rule's suppression update
4. Deliver the notification to the sink

A cycle never raises: failures are logged, passed to the optional
on_error(stage, exc) hook, and the cycle ends as a no-op. The suppression
commit happens before delivery, so a failed delivery is not retried.
"""

import logging
import threading
from datetime import datetime, tzinfo
from typing import Callable, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from proactive_signals.clock import SystemClock
from proactive_signals.models import NotificationCandidate
from proactive_signals.rules import RuleSet, SignalRule, default_rules
from proactive_signals.suppression import SuppressionStore

logger = logging.getLogger("proactive.scheduler")

DEFAULT_INTERVAL = 60
HISTORY_LIMIT = 100


class SignalEngine:
    """Owns the timer thread, the rule set and the suppression state."""

    def __init__(
        self,
        source,
        sink,
        rules: Optional[Sequence[SignalRule]] = None,
        store: Optional[SuppressionStore] = None,
        interval: float = DEFAULT_INTERVAL,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
        on_error: Optional[Callable[[str, Exception], None]] = None,
    ):
        self.source = source
        self.sink = sink
        self.tz = tz or ZoneInfo("UTC")
        self.clock = clock or SystemClock(self.tz)
        self.store = store if store is not None else SuppressionStore()
        self.interval = interval
        self.on_error = on_error
        self.rule_set = RuleSet(
            rules if rules is not None else default_rules(self.tz),
            on_error=self._report,
        )

        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._history: List[Dict] = []
        self.stats = {"cycles": 0, "notifications": 0, "errors": 0}

    # ---- Error reporting ----

    def _report(self, stage: str, error: Exception):
        self.stats["errors"] += 1
        if self.on_error is None:
            return
        try:
            self.on_error(stage, error)
        except Exception as e:
            logger.error(f"Error hook failed while reporting {stage}: {e}")

    # ---- One cycle ----

    def _now(self) -> datetime:
        now = self.clock()
        if now.tzinfo is None:
            return now.replace(tzinfo=self.tz)
        return now.astimezone(self.tz)

    def run_cycle(self, now: Optional[datetime] = None) -> Optional[NotificationCandidate]:
        """Run one evaluation cycle. Returns the delivered candidate, if any."""
        with self._cycle_lock:
            self.stats["cycles"] += 1
            try:
                if now is None:
                    now = self._now()
                elif now.tzinfo is None:
                    now = now.replace(tzinfo=self.tz)
                snapshot = self.source.get_snapshot()
                outcome = self.rule_set.evaluate(snapshot, now, self.store.view())
                if outcome is None:
                    return None
                self.store.apply(outcome.update)
            except Exception as e:
                logger.exception(f"Cycle failed: {e}")
                self._report("cycle", e)
                return None

            candidate = outcome.candidate
            self._record(candidate, now)
            try:
                self.sink.notify(candidate.message, candidate.severity, candidate.action)
                logger.info(f"Notified [{candidate.rule}]: {candidate.message}")
            except Exception as e:
                logger.error(f"Notification delivery failed for {candidate.rule}: {e}")
                self._report("sink", e)
            return candidate

    def _record(self, candidate: NotificationCandidate, now: datetime):
        self.stats["notifications"] += 1
        self._history.append({
            "timestamp": now.isoformat(),
            "rule": candidate.rule,
            "message": candidate.message[:200],
            "severity": candidate.severity.value,
        })
        # Keep last HISTORY_LIMIT
        if len(self._history) > HISTORY_LIMIT:
            self._history = self._history[-HISTORY_LIMIT:]

    def history(self, limit: int = 20) -> List[Dict]:
        """Recent notifications, oldest first."""
        return self._history[-limit:]

    # ---- Thread loop ----

    def _loop(self, stop_event: threading.Event):
        logger.info("Signal engine thread started")
        while not stop_event.wait(self.interval):
            # run_cycle swallows its own errors; this guards the loop itself
            try:
                self.run_cycle()
            except Exception as e:
                logger.error(f"Signal loop error: {e}")
        logger.info("Signal engine thread stopped")

    # ---- Start/Stop ----

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start the repeating cycle.

        Raises RuntimeError while a previous loop thread is still alive, even
        one that stop() already asked to exit.
        """
        if self.running:
            raise RuntimeError("signal engine is already running")
        logger.info("=" * 60)
        logger.info("PROACTIVE SIGNAL ENGINE STARTING")
        logger.info(f"Cycle interval: every {self.interval}s")
        logger.info(f"Timezone: {self.tz}")
        for rule in self.rule_set.describe():
            logger.info(f"  Rule: {rule['name']} (requires {rule['requires']}, {rule['scope']})")
        logger.info("=" * 60)

        # each run gets its own event so a new start cannot revive an old loop
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._loop, args=(self._stop_event,), name="signal-engine", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        """Cancel future cycles. A cycle already running finishes first."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        if thread is not None and not thread.is_alive():
            self._thread = None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stop() is called. Returns True once stopped."""
        return self._stop_event.wait(timeout)
