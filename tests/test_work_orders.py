import uuid
from datetime import timedelta

import pytest

from models import ReminderStatus, WorkOrderStatus
from services.errors import NotFoundError, ValidationError
from services.reminder_service import (
    cancel_service_reminder,
    complete_service_reminder,
    get_service_reminder,
    list_service_reminders,
)
from services.reminder_sync_service import sync_service_reminders
from services.vehicle_service import create_vehicle
from services.work_order_service import (
    create_work_order,
    link_reminder_to_work_order,
    set_work_order_status,
)


@pytest.fixture
def reminders(assigned, time_schedule, today):
    sync_service_reminders(today=today)
    return {r.due_date: r for r in list_service_reminders()}


@pytest.fixture
def overdue(reminders, today):
    return reminders[today - timedelta(days=20)]


@pytest.fixture
def work_order(vehicle):
    return create_work_order(vehicle.id, "Inspection and oil change")


def test_link_makes_reminder_final(overdue, work_order, today):
    linked = link_reminder_to_work_order(overdue.id, work_order.id)

    assert linked.work_order_id == work_order.id
    assert linked.is_final
    assert linked.status is ReminderStatus.OVERDUE

    sync_service_reminders(today=today + timedelta(days=30))
    assert get_service_reminder(overdue.id).work_order_id == work_order.id


def test_link_twice_is_rejected(overdue, work_order, vehicle):
    link_reminder_to_work_order(overdue.id, work_order.id)
    other = create_work_order(vehicle.id, "Second visit")

    with pytest.raises(ValidationError, match="already linked"):
        link_reminder_to_work_order(overdue.id, other.id)


def test_link_final_reminder_is_rejected(overdue, work_order):
    complete_service_reminder(overdue.id)

    with pytest.raises(ValidationError):
        link_reminder_to_work_order(overdue.id, work_order.id)


def test_link_to_closed_work_order_is_rejected(overdue, work_order):
    set_work_order_status(work_order.id, WorkOrderStatus.COMPLETED)

    with pytest.raises(ValidationError, match="COMPLETED"):
        link_reminder_to_work_order(overdue.id, work_order.id)


def test_link_to_other_vehicles_work_order_is_rejected(overdue):
    other_vehicle = create_vehicle("Van 7", mileage=40000)
    foreign = create_work_order(other_vehicle.id, "Brakes")

    with pytest.raises(ValidationError, match="different vehicle"):
        link_reminder_to_work_order(overdue.id, foreign.id)


def test_link_missing_records(overdue, work_order):
    with pytest.raises(NotFoundError):
        link_reminder_to_work_order(overdue.id, uuid.uuid4())
    with pytest.raises(NotFoundError):
        link_reminder_to_work_order(uuid.uuid4(), work_order.id)


def test_complete_and_cancel(reminders, today):
    first, second = reminders[today - timedelta(days=200)], reminders[today + timedelta(days=160)]

    done = complete_service_reminder(first.id, completed_on=today)
    dropped = cancel_service_reminder(second.id, reason="  Vehicle retired  ")

    assert done.status is ReminderStatus.COMPLETED and done.completed_on == today
    assert dropped.status is ReminderStatus.CANCELLED and dropped.cancel_reason == "Vehicle retired"
    with pytest.raises(ValidationError):
        complete_service_reminder(second.id)
    with pytest.raises(ValidationError):
        cancel_service_reminder(first.id)
    with pytest.raises(NotFoundError):
        complete_service_reminder(uuid.uuid4())


def test_list_orders_by_urgency_then_due(reminders, today):
    rows = list_service_reminders()

    assert [r.due_date for r in rows] == [
        today - timedelta(days=200),
        today - timedelta(days=20),
        today + timedelta(days=160),
    ]
    assert [r.status for r in list_service_reminders(statuses=[ReminderStatus.UPCOMING])] == [
        ReminderStatus.UPCOMING
    ]


def test_create_work_order_validation(vehicle):
    with pytest.raises(ValidationError):
        create_work_order(vehicle.id, "  ")
    with pytest.raises(NotFoundError):
        create_work_order(uuid.uuid4(), "Ghost")
