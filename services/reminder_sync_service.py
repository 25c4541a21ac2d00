# services/reminder_sync_service.py
"""
Reconciles persisted service reminders with the occurrences each active
(vehicle, schedule) pair should have right now.

Each pair is handled in its own session and transaction:

  1. load the schedule, vehicle, program assignment and existing reminders
  2. split existing rows into final (completed / cancelled / on a work order)
     and open ones
  3. compute the desired occurrences for today and the vehicle's odometer
  4. insert occurrences nobody holds yet, drop open rows that are no longer
     desired, refresh status on open rows that still match

Final rows are never touched: the pair's rows are locked on load and every
UPDATE or DELETE re-checks finality in SQL. Pairs run on a bounded thread
pool; a failing pair is logged and reported without affecting the others.
"""
from __future__ import annotations
import os
import uuid
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from db import SessionLocal
from models import (
    ServiceReminder,
    ServiceSchedule,
    ServiceProgram,
    ProgramVehicle,
    Vehicle,
    ScheduleType,
)
from services.errors import ConsistencyConflict, NotFoundError
from services.recurrence import (
    Occurrence,
    VehicleState,
    generate_occurrences,
    rule_from_schedule,
)

logger = logging.getLogger(__name__)

SYNC_MAX_WORKERS = int(os.getenv("REMINDER_SYNC_MAX_WORKERS", "4"))

Pair = Tuple[uuid.UUID, uuid.UUID]   # (schedule_id, vehicle_id)


@dataclass
class PairOutcome:
    schedule_id: uuid.UUID
    vehicle_id: uuid.UUID
    created: int = 0
    removed: int = 0
    updated: int = 0
    skipped_conflicts: int = 0


@dataclass
class PairError:
    schedule_id: uuid.UUID
    vehicle_id: uuid.UUID
    error_type: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scheduleId": str(self.schedule_id),
            "vehicleId": str(self.vehicle_id),
            "errorType": self.error_type,
            "message": self.message,
        }


@dataclass
class SyncResult:
    success: bool = True
    generated_count: int = 0
    removed_count: int = 0
    updated_count: int = 0
    pair_errors: List[PairError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "generatedCount": self.generated_count,
            "removedCount": self.removed_count,
            "updatedCount": self.updated_count,
            "perPairErrors": [e.to_dict() for e in self.pair_errors],
        }


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _due_key(schedule_type: ScheduleType, due) -> tuple:
    return (schedule_type, due)


def _reminder_key(r: ServiceReminder) -> tuple:
    return _due_key(r.schedule_type, r.due_value)


def _task_snapshot(schedule: ServiceSchedule) -> List[dict]:
    return [
        {
            "id": str(t.id),
            "name": t.name,
            "category": t.category,
            "estimated_cost": (str(t.estimated_cost) if t.estimated_cost is not None else None),
            "estimated_labour_hours": (str(t.estimated_labour_hours) if t.estimated_labour_hours is not None else None),
        }
        for t in schedule.tasks
    ]


def _schedule_snapshot(schedule: ServiceSchedule) -> dict:
    return {
        "schedule_name": schedule.name,
        "interval_value": schedule.interval_value,
        "interval_unit": schedule.interval_unit,
        "buffer_value": schedule.buffer_value,
        "buffer_unit": schedule.buffer_unit,
        "mileage_interval": schedule.mileage_interval,
        "mileage_buffer": schedule.mileage_buffer,
        "tasks": _task_snapshot(schedule),
    }


def _insert_reminder(db, reminder: ServiceReminder) -> None:
    """Insert inside a SAVEPOINT; a unique-key collision becomes ConsistencyConflict."""
    try:
        with db.begin_nested():
            db.add(reminder)
    except IntegrityError as e:
        raise ConsistencyConflict(reminder.vehicle_id, reminder.schedule_id, reminder.due_value) from e


def _open_row(db, row: ServiceReminder):
    return db.query(ServiceReminder).filter(ServiceReminder.id == row.id, ~ServiceReminder.is_final)


def _update_if_open(db, row: ServiceReminder, values: dict) -> bool:
    """UPDATE guarded by the finality predicate on the stored row, not the loaded copy."""
    if _open_row(db, row).update(values, synchronize_session=False):
        db.expire(row)
        return True
    logger.info(f"Reminder {row.id} became final during sync; left untouched")
    return False


def _delete_if_open(db, row: ServiceReminder) -> bool:
    if _open_row(db, row).delete(synchronize_session=False):
        db.expunge(row)
        return True
    logger.info(f"Reminder {row.id} became final during sync; kept")
    return False


def desired_occurrences(
    schedule: ServiceSchedule,
    state: VehicleState,
    baseline_mileage: Optional[int] = None,
    settled: frozenset = frozenset(),
) -> List[Occurrence]:
    return generate_occurrences(
        rule_from_schedule(schedule),
        state,
        baseline_mileage=baseline_mileage,
        settled=settled,
    )


def reconcile_pair(db, schedule_id: uuid.UUID, vehicle_id: uuid.UUID, today: date) -> PairOutcome:
    """
    Bring one (vehicle, schedule) pair in line with its desired occurrences.
    Runs inside the caller's transaction; raises NotFoundError if the schedule,
    its program or the vehicle is gone.
    """
    schedule = db.get(ServiceSchedule, schedule_id)
    if not schedule:
        raise NotFoundError("ServiceSchedule", schedule_id)
    vehicle = db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise NotFoundError("Vehicle", vehicle_id)
    program = db.get(ServiceProgram, schedule.program_id)
    if not program:
        raise NotFoundError("ServiceProgram", schedule.program_id)

    assignment = (
        db.query(ProgramVehicle)
        .filter(ProgramVehicle.program_id == program.id, ProgramVehicle.vehicle_id == vehicle_id)
        .first()
    )
    existing = (
        db.query(ServiceReminder)
        .filter(ServiceReminder.schedule_id == schedule_id, ServiceReminder.vehicle_id == vehicle_id)
        .with_for_update()
        .all()
    )

    final_rows = [r for r in existing if r.is_final]
    open_rows = {_reminder_key(r): r for r in existing if not r.is_final}
    final_keys = {_reminder_key(r) for r in final_rows}

    outcome = PairOutcome(schedule_id=schedule_id, vehicle_id=vehicle_id)

    desired: List[Occurrence] = []
    if schedule.is_active and program.is_active and assignment is not None:
        state = VehicleState(today=today, mileage=vehicle.mileage)
        settled = frozenset(due for (kind, due) in final_keys if kind is schedule.schedule_type)
        desired = desired_occurrences(
            schedule,
            state,
            baseline_mileage=assignment.mileage_at_assignment,
            settled=settled,
        )

    desired_keys: Set[tuple] = set()
    snapshot = _schedule_snapshot(schedule) if desired else None
    is_time = schedule.schedule_type is ScheduleType.TIME

    for occ in desired:
        key = _due_key(schedule.schedule_type, occ.due)
        desired_keys.add(key)
        if key in final_keys:
            continue

        row = open_rows.get(key)
        if row is not None:
            changes = {attr: value for attr, value in snapshot.items() if getattr(row, attr) != value}
            if row.status is not occ.status:
                logger.debug(f"Reminder {row.id} status {row.status.name} -> {occ.status.name}")
                changes["status"] = occ.status
            if changes and _update_if_open(db, row, changes):
                outcome.updated += 1
            continue

        reminder = ServiceReminder(
            vehicle_id=vehicle_id,
            schedule_id=schedule_id,
            program_id=schedule.program_id,
            schedule_type=schedule.schedule_type,
            due_date=occ.due if is_time else None,
            due_mileage=None if is_time else occ.due,
            status=occ.status,
            **snapshot,
        )
        try:
            _insert_reminder(db, reminder)
        except ConsistencyConflict as e:
            # another run inserted the same occurrence first
            logger.info(f"Skipped duplicate reminder: {e}")
            outcome.skipped_conflicts += 1
            continue
        outcome.created += 1

    for key, row in open_rows.items():
        if key not in desired_keys and _delete_if_open(db, row):
            outcome.removed += 1

    db.flush()
    return outcome


def _reconcile_in_transaction(schedule_id: uuid.UUID, vehicle_id: uuid.UUID, today: date) -> PairOutcome:
    with SessionLocal() as db:
        with db.begin():
            return reconcile_pair(db, schedule_id, vehicle_id, today)


def collect_pairs(db) -> List[Pair]:
    """
    Every pair that may need work: active schedules x vehicles assigned to their
    active program, plus any pair still holding open reminders (deleted
    schedules, unassigned vehicles, deactivated programs).
    """
    active = db.execute(
        select(ServiceSchedule.id, ProgramVehicle.vehicle_id)
        .join(ServiceProgram, ServiceProgram.id == ServiceSchedule.program_id)
        .join(ProgramVehicle, ProgramVehicle.program_id == ServiceProgram.id)
        .where(ServiceSchedule.is_active.is_(True), ServiceProgram.is_active.is_(True))
    ).all()
    stale = db.execute(
        select(ServiceReminder.schedule_id, ServiceReminder.vehicle_id)
        .where(~ServiceReminder.is_final)
        .distinct()
    ).all()
    pairs = {(row[0], row[1]) for row in active} | {(row[0], row[1]) for row in stale}
    return sorted(pairs, key=lambda p: (str(p[0]), str(p[1])))


def sync_service_reminders(
    today: Optional[date] = None,
    max_workers: Optional[int] = None,
) -> SyncResult:
    """
    Reconcile every (vehicle, schedule) pair and report what changed.

    Safe to call at any frequency: with no schedule, odometer or date change a
    second run creates and removes nothing. Per-pair failures are collected in
    ``pair_errors``; only a malformed call raises.
    """
    if today is None:
        today = _utc_today()
    if isinstance(today, datetime) or not isinstance(today, date):
        raise ValueError(f"today must be a date, got {type(today).__name__}")
    workers = SYNC_MAX_WORKERS if max_workers is None else max_workers
    if not isinstance(workers, int) or workers < 1:
        raise ValueError(f"max_workers must be a positive integer, got {workers!r}")

    logger.info(f"Starting service reminder sync for {today.isoformat()}")
    with SessionLocal() as db:
        pairs = collect_pairs(db)

    result = SyncResult()
    if not pairs:
        logger.info("No schedule/vehicle pairs to reconcile")
        return result

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="reminder-sync") as pool:
        futures = {
            pool.submit(_reconcile_in_transaction, schedule_id, vehicle_id, today): (schedule_id, vehicle_id)
            for schedule_id, vehicle_id in pairs
        }
        for future in as_completed(futures):
            schedule_id, vehicle_id = futures[future]
            try:
                outcome = future.result()
            except NotFoundError as e:
                logger.warning(f"Skipped schedule {schedule_id} / vehicle {vehicle_id}: {e}")
                result.pair_errors.append(PairError(schedule_id, vehicle_id, type(e).__name__, str(e)))
                continue
            except Exception as e:
                logger.exception(f"Reminder sync failed for schedule {schedule_id} / vehicle {vehicle_id}")
                result.pair_errors.append(PairError(schedule_id, vehicle_id, type(e).__name__, str(e)))
                continue
            result.generated_count += outcome.created
            result.removed_count += outcome.removed
            result.updated_count += outcome.updated

    result.success = not result.pair_errors
    logger.info(
        f"Synced service reminders: {len(pairs)} pairs, created {result.generated_count}, "
        f"removed {result.removed_count}, updated {result.updated_count}, "
        f"errors {len(result.pair_errors)}"
    )
    return result
