"""Tests for the goal deadline and vitals rules."""

from datetime import timedelta
from zoneinfo import ZoneInfo

from conftest import NOW, UTC, goal, reading

from proactive_signals.models import (
    ActionKind,
    Severity,
    Snapshot,
    SuppressionScope,
)
from proactive_signals.rules import GoalDeadlineRule, VitalsRule
from proactive_signals.suppression import MemoryFlagStore, SuppressionStore


def _snapshot(items=(), readings=()):
    return Snapshot.from_dict({"lifeItems": list(items), "biometricData": list(readings)})


# ---------------------------------------------------------------------------
# GoalDeadlineRule
# ---------------------------------------------------------------------------


def test_goal_rule_selects_stale_upcoming_goal():
    rule = GoalDeadlineRule(UTC)
    store = SuppressionStore()

    outcome = rule.evaluate(_snapshot([goal("g1", 3, 4, title="Run a marathon")]), NOW, store.view())

    assert outcome is not None
    assert outcome.candidate.message == 'Goal "Run a marathon" deadline is approaching.'
    assert outcome.candidate.severity == Severity.INFO
    assert outcome.candidate.action.kind == ActionKind.OPEN_EDITOR
    assert outcome.candidate.action.entity_id == "g1"
    assert outcome.candidate.action.label == "Add progress"
    assert outcome.update.scope == SuppressionScope.SESSION
    assert outcome.update.key == "g1"


def test_goal_rule_does_not_mutate_suppression():
    rule = GoalDeadlineRule(UTC)
    store = SuppressionStore()

    rule.evaluate(_snapshot([goal("g1", 3, 4)]), NOW, store.view())

    assert store.notified_ids("goal_deadline") == frozenset()


def test_goal_outside_lookahead_is_ignored():
    rule = GoalDeadlineRule(UTC)
    outcome = rule.evaluate(_snapshot([goal("g1", 10, 20)]), NOW, SuppressionStore().view())
    assert outcome is None


def test_goal_window_is_open_at_both_ends():
    rule = GoalDeadlineRule(UTC)
    at_horizon = goal("edge", 0, 5, dateISO=(NOW + timedelta(days=7)).isoformat())
    at_now = goal("now", 0, 5, dateISO=NOW.isoformat())
    past = goal("past", -1, 5)

    outcome = rule.evaluate(_snapshot([at_horizon, at_now, past]), NOW, SuppressionStore().view())

    assert outcome is None


def test_recently_updated_goal_is_not_stale():
    rule = GoalDeadlineRule(UTC)
    almost = goal("g1", 3, 2.9)
    outcome = rule.evaluate(_snapshot([almost]), NOW, SuppressionStore().view())
    assert outcome is None


def test_exactly_three_days_counts_as_stale():
    rule = GoalDeadlineRule(UTC)
    outcome = rule.evaluate(_snapshot([goal("g1", 3, 3)]), NOW, SuppressionStore().view())
    assert outcome is not None


def test_first_qualifying_goal_in_list_order_wins():
    rule = GoalDeadlineRule(UTC)
    items = [
        goal("fresh", 2, 1),
        goal("g2", 5, 10),
        goal("g1", 1, 10),
    ]
    outcome = rule.evaluate(_snapshot(items), NOW, SuppressionStore().view())
    assert outcome.update.key == "g2"


def test_already_notified_goal_is_skipped():
    rule = GoalDeadlineRule(UTC)
    store = SuppressionStore()
    store.mark_notified("goal_deadline", "g1")

    outcome = rule.evaluate(_snapshot([goal("g1", 3, 4), goal("g2", 4, 4)]), NOW, store.view())

    assert outcome.update.key == "g2"


def test_non_goal_items_are_ignored():
    rule = GoalDeadlineRule(UTC)
    event = goal("e1", 3, 4, type="event")
    assert rule.evaluate(_snapshot([event]), NOW, SuppressionStore().view()) is None


def test_malformed_and_future_dates_are_excluded_without_error():
    rule = GoalDeadlineRule(UTC)
    items = [
        goal("bad-date", 3, 4, dateISO="next tuesday"),
        goal("bad-update", 3, 4, updatedAt="yesterday-ish"),
        goal("future-update", 3, -2),
        goal("ok", 4, 5),
    ]
    outcome = rule.evaluate(_snapshot(items), NOW, SuppressionStore().view())
    assert outcome.update.key == "ok"


def test_configurable_thresholds():
    rule = GoalDeadlineRule(UTC, lookahead_days=14, stale_days=1)
    outcome = rule.evaluate(_snapshot([goal("g1", 10, 1)]), NOW, SuppressionStore().view())
    assert outcome is not None


# ---------------------------------------------------------------------------
# VitalsRule
# ---------------------------------------------------------------------------


def test_vitals_rule_warns_about_short_sleep_yesterday():
    rule = VitalsRule(UTC)
    outcome = rule.evaluate(_snapshot(readings=[reading(-1, 5)]), NOW, SuppressionStore().view())

    assert outcome is not None
    assert "(5h)" in outcome.candidate.message
    assert outcome.candidate.severity == Severity.INFO
    assert outcome.candidate.action is None
    assert outcome.update.scope == SuppressionScope.CALENDAR_DAY
    assert outcome.update.key == "2024-05-10"


def test_vitals_rule_keeps_fractional_hours():
    rule = VitalsRule(UTC)
    outcome = rule.evaluate(_snapshot(readings=[reading(-1, 5.5)]), NOW, SuppressionStore().view())
    assert "(5.5h)" in outcome.candidate.message


def test_vitals_rule_quiet_when_sleep_enough_or_missing():
    rule = VitalsRule(UTC)
    view = SuppressionStore().view()

    assert rule.evaluate(_snapshot(readings=[reading(-1, 6)]), NOW, view) is None
    assert rule.evaluate(_snapshot(readings=[reading(-2, 3), reading(0, 3)]), NOW, view) is None


def test_vitals_rule_skips_readings_with_unparseable_dates():
    rule = VitalsRule(UTC)
    readings = [
        {"dateISO": "yesterday", "sleepHours": 4},
        {"dateISO": "2024-13-45", "sleepHours": 3},
        reading(-1, 5),
    ]

    outcome = rule.evaluate(_snapshot(readings=readings), NOW, SuppressionStore().view())

    assert outcome is not None
    assert "(5h)" in outcome.candidate.message


def test_vitals_rule_quiet_after_firing_today():
    rule = VitalsRule(UTC)
    store = SuppressionStore(MemoryFlagStore())
    store.mark_fired("vitals", NOW.date())

    assert rule.evaluate(_snapshot(readings=[reading(-1, 4)]), NOW, store.view()) is None


def test_vitals_rule_rearms_on_next_day():
    rule = VitalsRule(UTC)
    store = SuppressionStore()
    store.mark_fired("vitals", NOW.date())
    tomorrow = NOW + timedelta(days=1)

    outcome = rule.evaluate(_snapshot(readings=[reading(0, 4)]), tomorrow, store.view())

    assert outcome is not None
    assert outcome.update.key == "2024-05-11"


def test_vitals_day_boundary_follows_configured_timezone():
    # 23:30 in UTC is already the next day in Tokyo
    late = NOW.replace(hour=23, minute=30)
    tokyo_rule = VitalsRule(ZoneInfo("Asia/Tokyo"))

    outcome = tokyo_rule.evaluate(
        _snapshot(readings=[reading(0, 4, base=late)]), late, SuppressionStore().view()
    )

    assert outcome is not None
    assert outcome.update.key == "2024-05-11"
