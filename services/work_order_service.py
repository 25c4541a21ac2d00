# services/work_order_service.py
from __future__ import annotations
import uuid
import logging
from db import SessionLocal
from models import (
    ServiceReminder,
    Vehicle,
    WorkOrder,
    WorkOrderStatus,
    CLOSED_WORK_ORDER_STATUSES,
    FINAL_STATUSES,
)
from services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def create_work_order(vehicle_id: uuid.UUID, title: str) -> WorkOrder:
    if not (title or "").strip():
        raise ValidationError("Work order title is required")

    with SessionLocal() as db:
        if not db.get(Vehicle, vehicle_id):
            raise NotFoundError("Vehicle", vehicle_id)
        wo = WorkOrder(vehicle_id=vehicle_id, title=title.strip(), status=WorkOrderStatus.OPEN)
        db.add(wo)
        db.commit()
        db.refresh(wo)
        return wo


def set_work_order_status(work_order_id: uuid.UUID, status: WorkOrderStatus) -> bool:
    with SessionLocal() as db:
        rows = (
            db.query(WorkOrder)
            .filter(WorkOrder.id == work_order_id)
            .update({"status": status}, synchronize_session=False)
        )
        db.commit()
        return rows > 0


def link_reminder_to_work_order(reminder_id: uuid.UUID, work_order_id: uuid.UUID) -> ServiceReminder:
    """
    Attach an open reminder to an open work order on the same vehicle. Once
    linked the reminder is final and the sync engine will neither update nor
    delete it.
    """
    with SessionLocal() as db:
        reminder = db.get(ServiceReminder, reminder_id, with_for_update=True)
        if not reminder:
            raise NotFoundError("ServiceReminder", reminder_id)
        if reminder.work_order_id is not None:
            raise ValidationError(
                f"Service reminder {reminder_id} is already linked to work order {reminder.work_order_id}"
            )
        if reminder.status in FINAL_STATUSES:
            raise ValidationError(f"Cannot link a reminder in {reminder.status.name} state to a work order")

        work_order = db.get(WorkOrder, work_order_id)
        if not work_order:
            raise NotFoundError("WorkOrder", work_order_id)
        if work_order.status in CLOSED_WORK_ORDER_STATUSES:
            raise ValidationError(f"Cannot link a reminder to a work order with {work_order.status.name} status")
        if work_order.vehicle_id != reminder.vehicle_id:
            raise ValidationError("Work order belongs to a different vehicle")

        reminder.work_order_id = work_order_id
        db.commit()
        db.refresh(reminder)
        logger.info(f"Service reminder {reminder_id} linked to work order {work_order_id}")
        return reminder
