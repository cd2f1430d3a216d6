#!/usr/bin/env python3
"""
Signal Rules - Pure evaluators over a data snapshot.

Each rule is a SignalRule with:
- A name (also its suppression key namespace)
- The snapshot input it requires (skipped cheaply when that input is empty)
- A suppression scope (session or calendar-day)
- A message template

evaluate(snapshot, now, suppression) returns a RuleOutcome or None and never
mutates anything; the engine commits the outcome's suppression update.

RuleSet runs rules in declared order and stops at the first outcome, so a
cycle surfaces at most one notification.
"""

import logging
from datetime import datetime, timedelta, tzinfo
from typing import Callable, Dict, List, Optional, Sequence

from proactive_signals.clock import parse_iso_date, parse_local_datetime, whole_days_between
from proactive_signals.models import (
    ActionKind,
    NotificationAction,
    NotificationCandidate,
    RuleOutcome,
    Severity,
    Snapshot,
    SuppressionScope,
    SuppressionUpdate,
)

logger = logging.getLogger("proactive.rules")

GOAL_LOOKAHEAD_DAYS = 7
GOAL_STALE_DAYS = 3
SLEEP_THRESHOLD_HOURS = 6.0


class SignalRule:
    """Base class for a notification rule."""

    name = "rule"
    requires = "life_items"
    scope = SuppressionScope.SESSION
    severity = Severity.INFO
    message_template = ""

    def format_message(self, **fields) -> str:
        return self.message_template.format(**fields)

    def evaluate(self, snapshot: Snapshot, now: datetime, suppression) -> Optional[RuleOutcome]:
        raise NotImplementedError


class GoalDeadlineRule(SignalRule):
    """Nudge about one upcoming goal that has not been touched for a while."""

    name = "goal_deadline"
    requires = "life_items"
    scope = SuppressionScope.SESSION
    message_template = 'Goal "{title}" deadline is approaching.'
    action_label = "Add progress"

    def __init__(self, tz: tzinfo, lookahead_days: int = GOAL_LOOKAHEAD_DAYS,
                 stale_days: int = GOAL_STALE_DAYS):
        self.tz = tz
        self.lookahead = timedelta(days=lookahead_days)
        self.stale_days = stale_days

    def _candidates(self, snapshot: Snapshot, now: datetime, notified):
        """Goals due inside (now, now + lookahead), in list order."""
        horizon = now + self.lookahead
        for item in snapshot.life_items:
            if item.type != "goal" or item.id in notified:
                continue
            due = parse_local_datetime(item.date_iso, self.tz)
            if due is None:
                logger.debug(f"Goal {item.id}: unparseable dateISO {item.date_iso!r}")
                continue
            if now < due < horizon:
                yield item

    def evaluate(self, snapshot: Snapshot, now: datetime, suppression) -> Optional[RuleOutcome]:
        notified = suppression.notified(self.name)

        for goal in self._candidates(snapshot, now, notified):
            updated = parse_local_datetime(goal.updated_at, self.tz)
            if updated is None or updated > now:
                logger.debug(f"Goal {goal.id}: unusable updatedAt {goal.updated_at!r}")
                continue
            if whole_days_between(updated, now) < self.stale_days:
                continue

            candidate = NotificationCandidate(
                rule=self.name,
                message=self.format_message(title=goal.title),
                severity=self.severity,
                action=NotificationAction(
                    kind=ActionKind.OPEN_EDITOR,
                    entity_id=goal.id,
                    label=self.action_label,
                ),
            )
            return RuleOutcome(candidate, SuppressionUpdate(self.name, self.scope, goal.id))

        return None


class VitalsRule(SignalRule):
    """Warn once per calendar day about a short night of sleep yesterday."""

    name = "vitals"
    requires = "biometric_readings"
    scope = SuppressionScope.CALENDAR_DAY
    message_template = (
        "I noticed you slept poorly yesterday ({hours}h). Try to get some rest today."
    )

    def __init__(self, tz: tzinfo, sleep_threshold: float = SLEEP_THRESHOLD_HOURS):
        self.tz = tz
        self.sleep_threshold = sleep_threshold

    def evaluate(self, snapshot: Snapshot, now: datetime, suppression) -> Optional[RuleOutcome]:
        today = now.astimezone(self.tz).date()
        if suppression.already_fired_on(self.name, today):
            return None

        yesterday = today - timedelta(days=1)
        reading = next(
            (r for r in snapshot.biometric_readings if parse_iso_date(r.date_iso) == yesterday),
            None,
        )
        if reading is None or reading.sleep_hours >= self.sleep_threshold:
            return None

        hours = f"{reading.sleep_hours:g}"
        candidate = NotificationCandidate(
            rule=self.name,
            message=self.format_message(hours=hours),
            severity=self.severity,
        )
        return RuleOutcome(candidate, SuppressionUpdate(self.name, self.scope, today.isoformat()))


class RuleSet:
    """Ordered, short-circuiting rule evaluation."""

    def __init__(self, rules: Sequence[SignalRule],
                 on_error: Optional[Callable[[str, Exception], None]] = None):
        self.rules: List[SignalRule] = list(rules)
        self.on_error = on_error

    def add_rule(self, rule: SignalRule):
        """Append a rule; it runs after every rule already registered."""
        self.rules.append(rule)

    def evaluate(self, snapshot: Snapshot, now: datetime, suppression) -> Optional[RuleOutcome]:
        for rule in self.rules:
            if not snapshot.has(rule.requires):
                continue
            try:
                outcome = rule.evaluate(snapshot, now, suppression)
            except Exception as e:
                logger.exception(f"Rule {rule.name} failed: {e}")
                self._report(f"rule:{rule.name}", e)
                continue
            if outcome is not None:
                return outcome
        return None

    def _report(self, stage: str, error: Exception):
        if self.on_error is None:
            return
        try:
            self.on_error(stage, error)
        except Exception as e:
            logger.error(f"Error hook failed while reporting {stage}: {e}")

    def describe(self) -> List[Dict[str, str]]:
        return [
            {"name": r.name, "requires": r.requires, "scope": r.scope.value}
            for r in self.rules
        ]


def default_rules(tz: tzinfo, config=None) -> List[SignalRule]:
    """The standard rule order: goal deadlines win over vitals."""
    if config is None:
        return [GoalDeadlineRule(tz), VitalsRule(tz)]
    return [
        GoalDeadlineRule(tz, config.goal_lookahead_days, config.goal_stale_days),
        VitalsRule(tz, config.sleep_threshold_hours),
    ]
