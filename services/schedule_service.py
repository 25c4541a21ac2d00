# services/schedule_service.py
from __future__ import annotations
import uuid
import logging
from datetime import date, datetime, timezone
from typing import Iterable, List, Mapping, Optional
from sqlalchemy.orm import joinedload
from db import SessionLocal
from models import ServiceSchedule, ServiceProgram, ServiceTask, ScheduleType
from services.errors import NotFoundError, ValidationError
from services.recurrence import (
    MILEAGE_FIELDS,
    TIME_FIELDS,
    TimeRule,
    build_rule,
    parse_time_unit,
)

logger = logging.getLogger(__name__)

RECURRENCE_FIELDS = set(TIME_FIELDS) | set(MILEAGE_FIELDS)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _recurrence_columns(fields: Mapping, rule) -> dict:
    """Column values for a validated rule; the other variant is cleared."""
    if isinstance(rule, TimeRule):
        return {
            "schedule_type": ScheduleType.TIME,
            "interval_value": fields["interval_value"],
            "interval_unit": parse_time_unit(fields["interval_unit"]),
            "buffer_value": fields["buffer_value"],
            "buffer_unit": parse_time_unit(fields["buffer_unit"]),
            "anchor_date": rule.anchor,
            "mileage_interval": None,
            "mileage_buffer": None,
            "anchor_mileage": None,
        }
    return {
        "schedule_type": ScheduleType.MILEAGE,
        "interval_value": None,
        "interval_unit": None,
        "buffer_value": None,
        "buffer_unit": None,
        "anchor_date": None,
        "mileage_interval": rule.interval,
        "mileage_buffer": rule.buffer,
        "anchor_mileage": rule.anchor,
    }


def _validate_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Schedule name is required")
    if len(name) > 200:
        raise ValidationError("Schedule name must be at most 200 characters")
    return name


def _load_tasks(db, task_ids: Iterable[uuid.UUID]) -> List[ServiceTask]:
    ids = list(dict.fromkeys(task_ids))
    if not ids:
        raise ValidationError("A schedule needs at least one service task")
    tasks = db.query(ServiceTask).filter(ServiceTask.id.in_(ids)).all()
    found = {t.id for t in tasks}
    for tid in ids:
        if tid not in found:
            raise NotFoundError("ServiceTask", tid)
    return tasks


def _load_schedule(db, schedule_id: uuid.UUID) -> Optional[ServiceSchedule]:
    return (
        db.query(ServiceSchedule)
        .options(joinedload(ServiceSchedule.tasks))
        .filter(ServiceSchedule.id == schedule_id)
        .first()
    )


# ───────────── SCHEDULES ───────────────────────────────────────────────────────
def list_service_schedules(
    program_id: Optional[uuid.UUID] = None,
    include_inactive: bool = False,
) -> List[ServiceSchedule]:
    with SessionLocal() as db:
        query = db.query(ServiceSchedule).options(joinedload(ServiceSchedule.tasks))
        if program_id:
            query = query.filter(ServiceSchedule.program_id == program_id)
        if not include_inactive:
            query = query.filter(ServiceSchedule.is_active.is_(True))
        return query.order_by(ServiceSchedule.name.asc()).all()


def get_service_schedule(schedule_id: uuid.UUID) -> Optional[ServiceSchedule]:
    with SessionLocal() as db:
        return _load_schedule(db, schedule_id)


def create_service_schedule(
    program_id: uuid.UUID,
    name: str,
    task_ids: Iterable[uuid.UUID],
    *,
    today: Optional[date] = None,
    **recurrence,
) -> ServiceSchedule:
    """
    Create a time- or mileage-based schedule under an active program.

    ``recurrence`` takes the raw fields (interval_value, interval_unit,
    buffer_value, buffer_unit, anchor_date) or (mileage_interval,
    mileage_buffer, anchor_mileage). All validation happens before anything is
    written; a time schedule without anchor_date is anchored on ``today``.
    """
    unknown = set(recurrence) - RECURRENCE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown schedule fields: {', '.join(sorted(unknown))}")
    name = _validate_name(name)
    rule = build_rule(recurrence, today=today or _utc_today())
    task_ids = list(task_ids or [])

    with SessionLocal() as db:
        program = db.get(ServiceProgram, program_id)
        if not program:
            raise NotFoundError("ServiceProgram", program_id)
        if not program.is_active:
            raise ValidationError(f"Service program {program_id} is not active")
        tasks = _load_tasks(db, task_ids)

        s = ServiceSchedule(
            program_id=program_id,
            name=name,
            is_active=True,
            tasks=tasks,
            **_recurrence_columns(recurrence, rule),
        )
        db.add(s)
        db.commit()
        logger.info(f"Created {s.schedule_type.name} schedule {s.id} in program {program_id}")
        return _load_schedule(db, s.id)


def update_service_schedule(
    schedule_id: uuid.UUID,
    *,
    name: Optional[str] = None,
    task_ids: Optional[Iterable[uuid.UUID]] = None,
    recurrence: Optional[Mapping] = None,
) -> ServiceSchedule:
    """
    Edit a schedule. ``recurrence`` replaces the whole rule (and may switch the
    schedule type); a time rule without anchor_date keeps the current anchor.
    Existing reminders are reconciled on the next sync.
    """
    if recurrence is not None:
        unknown = set(recurrence) - RECURRENCE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown schedule fields: {', '.join(sorted(unknown))}")
    if name is not None:
        name = _validate_name(name)

    with SessionLocal() as db:
        s = _load_schedule(db, schedule_id)
        if not s:
            raise NotFoundError("ServiceSchedule", schedule_id)
        if not s.is_active:
            raise ValidationError(f"Service schedule {schedule_id} has been deleted")

        if recurrence is not None:
            rule = build_rule(recurrence, today=s.anchor_date or _utc_today())
            for key, value in _recurrence_columns(recurrence, rule).items():
                setattr(s, key, value)
        if name is not None:
            s.name = name
        if task_ids is not None:
            s.tasks = _load_tasks(db, task_ids)

        db.commit()
        logger.info(f"Updated schedule {schedule_id}")
        return _load_schedule(db, schedule_id)


def soft_delete_service_schedule(schedule_id: uuid.UUID) -> bool:
    """Mark a schedule deleted. Open reminders go away on the next sync; final ones stay."""
    with SessionLocal() as db:
        rows = (
            db.query(ServiceSchedule)
            .filter(ServiceSchedule.id == schedule_id, ServiceSchedule.is_active.is_(True))
            .update({"is_active": False}, synchronize_session=False)
        )
        db.commit()
        return rows > 0
