import uuid
from datetime import timedelta

import pytest

from models import ScheduleType, TimeUnit
from services.errors import NotFoundError, ValidationError
from services.program_service import create_program, deactivate_program
from services.schedule_service import (
    create_service_schedule,
    get_service_schedule,
    list_service_schedules,
    soft_delete_service_schedule,
    update_service_schedule,
)

TIME_FIELDS = {"interval_value": 90, "interval_unit": "days", "buffer_value": 7, "buffer_unit": "days"}


def test_create_time_schedule_anchors_on_today(make_schedule, task, today):
    s = make_schedule(name="Quarterly check", **TIME_FIELDS)

    assert s.schedule_type is ScheduleType.TIME
    assert s.interval_unit is TimeUnit.DAYS
    assert s.anchor_date == today
    assert s.mileage_interval is None
    assert [t.id for t in s.tasks] == [task.id]


def test_create_mileage_schedule(mileage_schedule):
    assert mileage_schedule.schedule_type is ScheduleType.MILEAGE
    assert mileage_schedule.anchor_mileage == 30000
    assert mileage_schedule.interval_value is None
    assert mileage_schedule.anchor_date is None


def test_create_rejects_both_variants(make_schedule):
    with pytest.raises(ValidationError):
        make_schedule(mileage_interval=5000, mileage_buffer=500, **TIME_FIELDS)


def test_create_rejects_buffer_not_shorter_than_interval(make_schedule):
    with pytest.raises(ValidationError, match="buffer"):
        make_schedule(mileage_interval=5000, mileage_buffer=6000)


def test_create_rejects_unknown_fields(make_schedule):
    with pytest.raises(ValidationError, match="interval_months"):
        make_schedule(interval_months=3, **TIME_FIELDS)


def test_create_requires_a_name(make_schedule):
    with pytest.raises(ValidationError):
        make_schedule(name="   ", **TIME_FIELDS)


def test_create_under_missing_program_is_not_found(make_schedule):
    with pytest.raises(NotFoundError):
        make_schedule(program_id=uuid.uuid4(), **TIME_FIELDS)


def test_create_under_inactive_program_writes_nothing(make_schedule, program):
    deactivate_program(program.id)

    with pytest.raises(ValidationError, match="not active"):
        make_schedule(**TIME_FIELDS)
    assert list_service_schedules(include_inactive=True) == []


def test_create_requires_existing_tasks(make_schedule):
    with pytest.raises(ValidationError):
        make_schedule(task_ids=[], **TIME_FIELDS)
    with pytest.raises(NotFoundError):
        make_schedule(task_ids=[uuid.uuid4()], **TIME_FIELDS)


def test_update_recurrence_keeps_anchor(time_schedule, today):
    updated = update_service_schedule(
        time_schedule.id,
        recurrence={"interval_value": 4, "interval_unit": "weeks", "buffer_value": 1, "buffer_unit": "weeks"},
    )

    assert updated.interval_value == 4
    assert updated.interval_unit is TimeUnit.WEEKS
    assert updated.anchor_date == today - timedelta(days=200)


def test_update_can_switch_schedule_type(time_schedule):
    updated = update_service_schedule(
        time_schedule.id,
        name="Odometer based",
        recurrence={"mileage_interval": 8000, "mileage_buffer": 800},
    )

    assert updated.schedule_type is ScheduleType.MILEAGE
    assert updated.name == "Odometer based"
    assert updated.anchor_date is None
    assert updated.interval_unit is None


def test_update_missing_schedule_is_not_found():
    with pytest.raises(NotFoundError):
        update_service_schedule(uuid.uuid4(), name="x")


def test_soft_delete(time_schedule):
    assert soft_delete_service_schedule(time_schedule.id) is True
    assert soft_delete_service_schedule(time_schedule.id) is False

    assert get_service_schedule(time_schedule.id).is_active is False
    assert list_service_schedules() == []
    with pytest.raises(ValidationError):
        update_service_schedule(time_schedule.id, name="Revived")


def test_list_filters_by_program(make_schedule, task, today):
    other = create_program("Heavy duty fleet")
    make_schedule(name="A", **TIME_FIELDS)
    create_service_schedule(other.id, "B", [task.id], today=today, **TIME_FIELDS)

    assert [s.name for s in list_service_schedules(program_id=other.id)] == ["B"]
    assert [s.name for s in list_service_schedules()] == ["A", "B"]
