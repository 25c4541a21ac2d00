# models/program.py
import uuid
from sqlalchemy import (
    Column, Text, TIMESTAMP, Date, ForeignKey,
    Integer, Boolean, Numeric, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from sqlalchemy import text

from .base import Base


class ServiceProgram(Base):
    """
    A maintenance program (e.g., "Light duty fleet"). Schedules hang off a
    program and apply to every vehicle assigned to it.
    """
    __tablename__ = "service_programs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, nullable=False, server_default=text("true"), default=True)
    created_at = Column(TIMESTAMP, server_default=func.now())

    schedules = relationship("ServiceSchedule", back_populates="program")
    vehicle_assignments = relationship("ProgramVehicle", back_populates="program", cascade="all, delete-orphan")


class ProgramVehicle(Base):
    """
    Vehicle <-> program assignment. The odometer reading at assignment time
    seeds mileage schedules that have no explicit first-service mileage.
    """
    __tablename__ = "service_program_vehicles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    program_id = Column(UUID(as_uuid=True), ForeignKey("service_programs.id", ondelete="CASCADE"), nullable=False)
    vehicle_id = Column(UUID(as_uuid=True), ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False)
    assigned_on = Column(Date, nullable=False)
    mileage_at_assignment = Column(Integer)

    program = relationship("ServiceProgram", back_populates="vehicle_assignments")
    vehicle = relationship("Vehicle", back_populates="program_assignments")

    __table_args__ = (
        UniqueConstraint("program_id", "vehicle_id", name="uq_service_program_vehicles_pair"),
    )


class ServiceTask(Base):
    """
    Catalog of maintenance tasks (Oil Change, Tire Rotation, ...) that a
    schedule bundles together.
    """
    __tablename__ = "service_tasks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    category = Column(Text)              # e.g., Engine, Tires, Brakes
    description = Column(Text)
    estimated_cost = Column(Numeric(10, 2))
    estimated_labour_hours = Column(Numeric(6, 2))
    created_at = Column(TIMESTAMP, server_default=func.now())
