from datetime import date, timedelta

import pytest

from models import ReminderStatus, TimeUnit
from services.errors import ValidationError
from services.recurrence import (
    MileageRule,
    TimeRule,
    VehicleState,
    build_rule,
    classify,
    generate_occurrences,
    parse_time_unit,
    resolve_anchor,
    to_days,
)

TODAY = date(2026, 3, 1)
STATE = VehicleState(today=TODAY, mileage=15000)


def days(n):
    return TODAY + timedelta(days=n)


# ───────────── CLASSIFIER ──────────────────────────────────────────────────────
def test_due_on_now_is_overdue():
    assert classify(TODAY, TODAY, timedelta(days=7)) is ReminderStatus.OVERDUE
    assert classify(15000, 15000, 500) is ReminderStatus.OVERDUE


def test_due_at_buffer_edge_is_due_soon():
    assert classify(days(1), TODAY, timedelta(days=7)) is ReminderStatus.DUE_SOON
    assert classify(days(7), TODAY, timedelta(days=7)) is ReminderStatus.DUE_SOON
    assert classify(15500, 15000, 500) is ReminderStatus.DUE_SOON


def test_due_past_buffer_is_upcoming():
    assert classify(days(8), TODAY, timedelta(days=7)) is ReminderStatus.UPCOMING
    assert classify(15501, 15000, 500) is ReminderStatus.UPCOMING


# ───────────── GENERATOR ───────────────────────────────────────────────────────
def test_time_schedule_with_old_anchor_catches_up():
    rule = TimeRule(interval_days=180, buffer_days=30, anchor=days(-200))

    occurrences = generate_occurrences(rule, STATE)

    assert [(o.due, o.status) for o in occurrences] == [
        (days(-200), ReminderStatus.OVERDUE),
        (days(-20), ReminderStatus.OVERDUE),
        (days(160), ReminderStatus.UPCOMING),
    ]


def test_mileage_schedule_far_ahead_yields_single_upcoming():
    rule = MileageRule(interval=10000, buffer=1000, anchor=30000)

    occurrences = generate_occurrences(rule, STATE)

    assert [(o.due, o.status) for o in occurrences] == [(30000, ReminderStatus.UPCOMING)]


def test_weeks_are_normalized_to_days():
    rule = build_rule(
        {"interval_value": 8, "interval_unit": "weeks", "buffer_value": 2, "buffer_unit": "weeks",
         "anchor_date": days(10)},
    )

    occurrences = generate_occurrences(rule, STATE)

    assert rule.interval_days == 56 and rule.buffer_days == 14
    assert [(o.due, o.status) for o in occurrences] == [
        (days(10), ReminderStatus.DUE_SOON),
        (days(66), ReminderStatus.UPCOMING),
    ]


def test_consecutive_occurrences_are_one_interval_apart():
    rule = TimeRule(interval_days=30, buffer_days=5, anchor=days(-400))

    occurrences = generate_occurrences(rule, STATE)

    gaps = {(b.due - a.due).days for a, b in zip(occurrences, occurrences[1:])}
    assert gaps == {30}
    assert occurrences[-1].status is ReminderStatus.UPCOMING
    assert all(o.status is not ReminderStatus.UPCOMING for o in occurrences[:-1])


def test_mileage_anchor_defaults_to_mileage_plus_interval():
    rule = MileageRule(interval=5000, buffer=500)

    assert resolve_anchor(rule, STATE) == 20000
    assert resolve_anchor(rule, STATE, baseline_mileage=12000) == 17000


def test_settled_upcoming_value_is_skipped():
    rule = TimeRule(interval_days=180, buffer_days=30, anchor=days(-200))

    occurrences = generate_occurrences(rule, STATE, settled={days(160)})

    assert [o.due for o in occurrences] == [days(-200), days(-20), days(340)]
    assert occurrences[-1].status is ReminderStatus.UPCOMING


def test_settled_overdue_values_are_still_emitted():
    rule = MileageRule(interval=1000, buffer=100, anchor=13000)

    occurrences = generate_occurrences(rule, STATE, settled={13000, 14000})

    assert [o.due for o in occurrences] == [13000, 14000, 15000, 16000]


# ───────────── VALIDATION ──────────────────────────────────────────────────────
def test_parse_time_unit_accepts_names_and_members():
    assert parse_time_unit("weeks") is TimeUnit.WEEKS
    assert parse_time_unit("DAYS") is TimeUnit.DAYS
    assert parse_time_unit(TimeUnit.WEEKS) is TimeUnit.WEEKS
    assert to_days(3, "weeks") == 21
    with pytest.raises(ValidationError):
        parse_time_unit("months")


def test_build_rule_defaults_anchor_to_today():
    rule = build_rule(
        {"interval_value": 90, "interval_unit": "days", "buffer_value": 7, "buffer_unit": "days"},
        today=TODAY,
    )
    assert rule == TimeRule(interval_days=90, buffer_days=7, anchor=TODAY)


@pytest.mark.parametrize(
    "fields",
    [
        {"interval_value": 90, "interval_unit": "days", "buffer_value": 7, "buffer_unit": "days",
         "mileage_interval": 5000, "mileage_buffer": 500},
        {},
        {"interval_value": 0, "interval_unit": "days", "buffer_value": 7, "buffer_unit": "days"},
        {"interval_value": 90, "interval_unit": "days", "buffer_value": -1, "buffer_unit": "days"},
        {"interval_value": 90, "buffer_value": 7, "buffer_unit": "days"},
        {"interval_value": 2, "interval_unit": "weeks", "buffer_value": 14, "buffer_unit": "days"},
        {"mileage_interval": 5000, "mileage_buffer": 0},
        {"mileage_interval": 5000, "mileage_buffer": 5000},
        {"mileage_interval": 5000, "mileage_buffer": 500, "anchor_mileage": -1},
        {"mileage_interval": True, "mileage_buffer": 500},
    ],
)
def test_build_rule_rejects_invalid_definitions(fields):
    with pytest.raises(ValidationError):
        build_rule(fields, today=TODAY)


@pytest.mark.parametrize(
    "anchor, message",
    [
        (30000.5, "anchor_mileage must be an integer"),
        ("30000", "anchor_mileage must be an integer"),
        (-1, "anchor_mileage cannot be negative"),
    ],
)
def test_anchor_mileage_errors_name_the_problem(anchor, message):
    with pytest.raises(ValidationError) as exc:
        build_rule({"mileage_interval": 5000, "mileage_buffer": 500, "anchor_mileage": anchor})
    assert exc.value.messages == [message]


def test_validation_error_collects_messages():
    with pytest.raises(ValidationError) as exc:
        build_rule({"mileage_interval": -5, "mileage_buffer": 0})
    assert len(exc.value.messages) == 2
