# services/recurrence.py
"""
Recurrence math for service schedules.

Everything in here is pure: "today" and the vehicle's odometer are passed in
as a ``VehicleState``, nothing reads the clock or the database. The sync
engine and the schedule validators both build on these helpers so that
classification is identical wherever it is used.

A schedule's rule is one of two shapes:

  - ``TimeRule``     due values are ``date`` objects, interval/buffer in whole days
  - ``MileageRule``  due values are ``int`` odometer readings

Weeks are normalized to days up front so every comparison is exact integer
arithmetic.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, timedelta
from typing import AbstractSet, List, Optional, Union

from models import ReminderStatus, ScheduleType, TimeUnit
from services.errors import ValidationError

DAYS_PER_UNIT = {
    TimeUnit.DAYS: 1,
    TimeUnit.WEEKS: 7,
}


def parse_time_unit(unit) -> TimeUnit:
    """Accept a TimeUnit or its name/value ("weeks", "WEEKS")."""
    if isinstance(unit, TimeUnit):
        return unit
    if isinstance(unit, str):
        key = unit.strip().upper()
        if key in TimeUnit.__members__:
            return TimeUnit[key]
    raise ValidationError(f"Unsupported time unit: {unit!r}")


def to_days(value: int, unit) -> int:
    return value * DAYS_PER_UNIT[parse_time_unit(unit)]


@dataclass(frozen=True)
class TimeRule:
    interval_days: int
    buffer_days: int
    anchor: date

    @property
    def step(self) -> timedelta:
        return timedelta(days=self.interval_days)

    @property
    def window(self) -> timedelta:
        return timedelta(days=self.buffer_days)


@dataclass(frozen=True)
class MileageRule:
    interval: int
    buffer: int
    anchor: Optional[int] = None

    @property
    def step(self) -> int:
        return self.interval

    @property
    def window(self) -> int:
        return self.buffer


Rule = Union[TimeRule, MileageRule]
DueValue = Union[date, int]


@dataclass(frozen=True)
class VehicleState:
    today: date
    mileage: int


@dataclass(frozen=True)
class Occurrence:
    due: DueValue
    status: ReminderStatus


def classify(due: DueValue, now: DueValue, buffer) -> ReminderStatus:
    """
    OVERDUE   due <= now
    DUE_SOON  now < due <= now + buffer
    UPCOMING  due > now + buffer

    ``buffer`` is a timedelta for dates and an int for mileage.
    """
    if due <= now:
        return ReminderStatus.OVERDUE
    if due <= now + buffer:
        return ReminderStatus.DUE_SOON
    return ReminderStatus.UPCOMING


def current_value(rule: Rule, state: VehicleState) -> DueValue:
    return state.today if isinstance(rule, TimeRule) else state.mileage


def resolve_anchor(rule: Rule, state: VehicleState, baseline_mileage: Optional[int] = None) -> DueValue:
    """First due value of the rule for this vehicle."""
    if isinstance(rule, TimeRule):
        return rule.anchor
    if rule.anchor is not None:
        return rule.anchor
    base = state.mileage if baseline_mileage is None else baseline_mileage
    return base + rule.interval


def generate_occurrences(
    rule: Rule,
    state: VehicleState,
    *,
    baseline_mileage: Optional[int] = None,
    settled: AbstractSet[DueValue] = frozenset(),
) -> List[Occurrence]:
    """
    All overdue/due-soon occurrences from the anchor onward, followed by the
    first upcoming one.

    ``settled`` holds due values already owned by final reminders. An upcoming
    occurrence in that set does not count as the lookahead; generation moves on
    to the next step instead (and does not emit it).
    """
    now = current_value(rule, state)
    due = resolve_anchor(rule, state, baseline_mileage)
    out: List[Occurrence] = []
    while True:
        status = classify(due, now, rule.window)
        if status is ReminderStatus.UPCOMING:
            if due not in settled:
                out.append(Occurrence(due, status))
                return out
        else:
            out.append(Occurrence(due, status))
        due = due + rule.step


# ───────────── VALIDATION ──────────────────────────────────────────────────────
TIME_FIELDS = ("interval_value", "interval_unit", "buffer_value", "buffer_unit", "anchor_date")
MILEAGE_FIELDS = ("mileage_interval", "mileage_buffer", "anchor_mileage")


def _is_int(v) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def build_rule(fields: dict, today: Optional[date] = None) -> Rule:
    """
    Validate raw schedule recurrence fields and return the matching rule.

    Exactly one of the time fields or the mileage fields may be populated.
    Intervals and buffers must be positive integers and the buffer must be
    shorter than the interval. A time schedule without ``anchor_date`` is
    anchored on ``today``.
    """
    has_time = any(fields.get(k) is not None for k in TIME_FIELDS)
    has_mileage = any(fields.get(k) is not None for k in MILEAGE_FIELDS)

    if has_time and has_mileage:
        raise ValidationError("A schedule must be either time-based or mileage-based, not both")
    if not has_time and not has_mileage:
        raise ValidationError(
            "A schedule must define a time interval (interval_value/interval_unit) "
            "or a mileage interval (mileage_interval)"
        )

    errors: List[str] = []
    if has_time:
        interval_value = fields.get("interval_value")
        buffer_value = fields.get("buffer_value")
        units = {}
        for key in ("interval_unit", "buffer_unit"):
            raw = fields.get(key)
            if raw is None:
                errors.append(f"{key} is required for time-based schedules")
                continue
            try:
                units[key] = parse_time_unit(raw)
            except ValidationError as e:
                errors.extend(e.messages)
        if not _is_int(interval_value) or interval_value <= 0:
            errors.append("interval_value must be a positive integer")
        if not _is_int(buffer_value) or buffer_value <= 0:
            errors.append("buffer_value must be a positive integer")
        anchor = fields.get("anchor_date") or today
        if anchor is None:
            errors.append("anchor_date is required when no current date is supplied")
        elif not isinstance(anchor, date):
            errors.append("anchor_date must be a date")
        if errors:
            raise ValidationError(errors)

        interval_days = to_days(interval_value, units["interval_unit"])
        buffer_days = to_days(buffer_value, units["buffer_unit"])
        if buffer_days >= interval_days:
            raise ValidationError("Time buffer must be shorter than the time interval")
        return TimeRule(interval_days=interval_days, buffer_days=buffer_days, anchor=anchor)

    interval = fields.get("mileage_interval")
    buffer = fields.get("mileage_buffer")
    anchor_mileage = fields.get("anchor_mileage")
    if not _is_int(interval) or interval <= 0:
        errors.append("mileage_interval must be a positive integer")
    if not _is_int(buffer) or buffer <= 0:
        errors.append("mileage_buffer must be a positive integer")
    if anchor_mileage is not None:
        if not _is_int(anchor_mileage):
            errors.append("anchor_mileage must be an integer")
        elif anchor_mileage < 0:
            errors.append("anchor_mileage cannot be negative")
    if errors:
        raise ValidationError(errors)
    if buffer >= interval:
        raise ValidationError("Mileage buffer must be smaller than the mileage interval")
    return MileageRule(interval=interval, buffer=buffer, anchor=anchor_mileage)


def rule_from_schedule(schedule) -> Rule:
    """Rule for a persisted ServiceSchedule row."""
    if schedule.schedule_type is ScheduleType.TIME:
        return TimeRule(
            interval_days=to_days(schedule.interval_value, schedule.interval_unit),
            buffer_days=to_days(schedule.buffer_value, schedule.buffer_unit),
            anchor=schedule.anchor_date,
        )
    return MileageRule(
        interval=schedule.mileage_interval,
        buffer=schedule.mileage_buffer,
        anchor=schedule.anchor_mileage,
    )
