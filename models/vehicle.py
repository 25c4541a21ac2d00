import uuid
from sqlalchemy import Column, Text, TIMESTAMP, Integer, String, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from .base import Base

class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    vin = Column(String(32), nullable=True)
    mileage = Column(Integer, nullable=False, default=0)  # current odometer reading
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    program_assignments = relationship("ProgramVehicle", back_populates="vehicle", cascade="all, delete-orphan")
    service_reminders = relationship("ServiceReminder", back_populates="vehicle", cascade="all, delete-orphan")
    work_orders = relationship("WorkOrder", back_populates="vehicle", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("mileage >= 0", name="vehicles_mileage_nonneg"),
    )
