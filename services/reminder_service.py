# services/reminder_service.py
from __future__ import annotations
import uuid
import logging
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional
from db import SessionLocal
from models import ServiceReminder, ReminderStatus, FINAL_STATUSES
from services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

STATUS_PRIORITY = {
    ReminderStatus.OVERDUE: 0,
    ReminderStatus.DUE_SOON: 1,
}


def _sort_key(r: ServiceReminder):
    return (
        STATUS_PRIORITY.get(r.status, 2),
        r.due_date or date.max,
        r.due_mileage if r.due_mileage is not None else float("inf"),
    )


def list_service_reminders(
    vehicle_id: Optional[uuid.UUID] = None,
    schedule_id: Optional[uuid.UUID] = None,
    statuses: Optional[Iterable[ReminderStatus]] = None,
) -> List[ServiceReminder]:
    """Reminders ordered overdue first, then due soon, then the rest by due value."""
    with SessionLocal() as db:
        query = db.query(ServiceReminder)
        if vehicle_id:
            query = query.filter(ServiceReminder.vehicle_id == vehicle_id)
        if schedule_id:
            query = query.filter(ServiceReminder.schedule_id == schedule_id)
        if statuses:
            query = query.filter(ServiceReminder.status.in_(list(statuses)))
        return sorted(query.all(), key=_sort_key)


def get_service_reminder(reminder_id: uuid.UUID) -> Optional[ServiceReminder]:
    with SessionLocal() as db:
        return db.get(ServiceReminder, reminder_id)


def complete_service_reminder(reminder_id: uuid.UUID, completed_on: Optional[date] = None) -> ServiceReminder:
    """Mark a reminder done. From here on the sync engine leaves it alone."""
    with SessionLocal() as db:
        r = db.get(ServiceReminder, reminder_id, with_for_update=True)
        if not r:
            raise NotFoundError("ServiceReminder", reminder_id)
        if r.status in FINAL_STATUSES:
            raise ValidationError(f"Cannot complete a reminder in {r.status.name} state")
        r.status = ReminderStatus.COMPLETED
        r.completed_on = completed_on or datetime.now(timezone.utc).date()
        db.commit()
        db.refresh(r)
        logger.info(f"Service reminder {reminder_id} completed on {r.completed_on}")
        return r


def cancel_service_reminder(reminder_id: uuid.UUID, reason: Optional[str] = None) -> ServiceReminder:
    with SessionLocal() as db:
        r = db.get(ServiceReminder, reminder_id, with_for_update=True)
        if not r:
            raise NotFoundError("ServiceReminder", reminder_id)
        if r.status in FINAL_STATUSES:
            raise ValidationError(f"Cannot cancel a reminder in {r.status.name} state")
        r.status = ReminderStatus.CANCELLED
        r.cancel_reason = (reason or "").strip() or None
        db.commit()
        db.refresh(r)
        logger.info(f"Service reminder {reminder_id} cancelled")
        return r
