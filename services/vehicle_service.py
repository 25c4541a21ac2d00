# services/vehicle_service.py
from __future__ import annotations
import uuid
import logging
from typing import Optional
from db import SessionLocal
from models import Vehicle
from services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


# ───────────── VEHICLES ────────────────────────────────────────────────────────
def create_vehicle(name: str, mileage: int = 0, vin: Optional[str] = None) -> Vehicle:
    if not (name or "").strip():
        raise ValidationError("Vehicle name is required")
    if mileage < 0:
        raise ValidationError("Mileage cannot be negative")

    with SessionLocal() as db:
        v = Vehicle(name=name.strip(), mileage=mileage, vin=vin)
        db.add(v)
        db.commit()
        db.refresh(v)
        return v


def get_vehicle(vehicle_id: uuid.UUID) -> Optional[Vehicle]:
    with SessionLocal() as db:
        return db.get(Vehicle, vehicle_id)


def update_vehicle_mileage(vehicle_id: uuid.UUID, mileage: int) -> Vehicle:
    """Record a new odometer reading. Reminders pick it up on the next sync."""
    if mileage < 0:
        raise ValidationError("Mileage cannot be negative")

    with SessionLocal() as db:
        v = db.get(Vehicle, vehicle_id)
        if not v:
            raise NotFoundError("Vehicle", vehicle_id)
        if mileage < v.mileage:
            logger.warning(f"Odometer for vehicle {vehicle_id} moved backwards: {v.mileage} -> {mileage}")
        v.mileage = mileage
        db.commit()
        db.refresh(v)
        return v
