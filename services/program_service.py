# services/program_service.py
from __future__ import annotations
import uuid
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from db import SessionLocal
from models import ServiceProgram, ProgramVehicle, ServiceTask, Vehicle
from services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


# ───────────── PROGRAMS ────────────────────────────────────────────────────────
def create_program(name: str, description: Optional[str] = None) -> ServiceProgram:
    if not (name or "").strip():
        raise ValidationError("Program name is required")

    with SessionLocal() as db:
        p = ServiceProgram(name=name.strip(), description=description or None, is_active=True)
        db.add(p)
        db.commit()
        db.refresh(p)
        return p


def deactivate_program(program_id: uuid.UUID) -> bool:
    """Soft-delete a program. Its open reminders are removed on the next sync."""
    with SessionLocal() as db:
        rows = (
            db.query(ServiceProgram)
            .filter(ServiceProgram.id == program_id)
            .update({"is_active": False}, synchronize_session=False)
        )
        db.commit()
        return rows > 0


# ───────────── VEHICLE ASSIGNMENTS ─────────────────────────────────────────────
def assign_vehicle(
    program_id: uuid.UUID,
    vehicle_id: uuid.UUID,
    assigned_on: Optional[date] = None,
) -> ProgramVehicle:
    """Attach a vehicle to a program, capturing its odometer at assignment time."""
    with SessionLocal() as db:
        program = db.get(ServiceProgram, program_id)
        if not program:
            raise NotFoundError("ServiceProgram", program_id)
        if not program.is_active:
            raise ValidationError(f"Service program {program_id} is not active")
        vehicle = db.get(Vehicle, vehicle_id)
        if not vehicle:
            raise NotFoundError("Vehicle", vehicle_id)

        existing = (
            db.query(ProgramVehicle)
            .filter(ProgramVehicle.program_id == program_id, ProgramVehicle.vehicle_id == vehicle_id)
            .first()
        )
        if existing:
            return existing

        link = ProgramVehicle(
            program_id=program_id,
            vehicle_id=vehicle_id,
            assigned_on=assigned_on or _utc_today(),
            mileage_at_assignment=vehicle.mileage,
        )
        db.add(link)
        db.commit()
        db.refresh(link)
        logger.info(f"Assigned vehicle {vehicle_id} to program {program_id} at {vehicle.mileage}")
        return link


def unassign_vehicle(program_id: uuid.UUID, vehicle_id: uuid.UUID) -> bool:
    with SessionLocal() as db:
        rows = (
            db.query(ProgramVehicle)
            .filter(ProgramVehicle.program_id == program_id, ProgramVehicle.vehicle_id == vehicle_id)
            .delete(synchronize_session=False)
        )
        db.commit()
        return rows > 0


# ───────────── TASKS ───────────────────────────────────────────────────────────
def create_service_task(
    name: str,
    *,
    category: Optional[str] = None,
    description: Optional[str] = None,
    estimated_cost: Optional[Decimal] = None,
    estimated_labour_hours: Optional[Decimal] = None,
) -> ServiceTask:
    if not (name or "").strip():
        raise ValidationError("Task name is required")

    with SessionLocal() as db:
        t = ServiceTask(
            name=name.strip(),
            category=category,
            description=description,
            estimated_cost=estimated_cost,
            estimated_labour_hours=estimated_labour_hours,
        )
        db.add(t)
        db.commit()
        db.refresh(t)
        return t
