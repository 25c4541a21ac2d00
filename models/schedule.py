# models/schedule.py
import uuid
import enum
from sqlalchemy import (
    Column, Text, TIMESTAMP, Date, ForeignKey,
    Integer, Boolean, Enum, CheckConstraint, Table,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from sqlalchemy import Index
from sqlalchemy import text

from .base import Base


class ScheduleType(enum.Enum):
    TIME = "time"
    MILEAGE = "mileage"


class TimeUnit(enum.Enum):
    DAYS = "days"
    WEEKS = "weeks"


schedule_tasks = Table(
    "service_schedule_tasks",
    Base.metadata,
    Column("schedule_id", UUID(as_uuid=True), ForeignKey("service_schedules.id", ondelete="CASCADE"), primary_key=True),
    Column("task_id", UUID(as_uuid=True), ForeignKey("service_tasks.id", ondelete="CASCADE"), primary_key=True),
)


class ServiceSchedule(Base):
    """
    Recurrence rule for a bundle of service tasks inside a program.

    Either time-based (interval/buffer in days or weeks, first due on
    ``anchor_date``) or mileage-based (interval/buffer in distance, first due at
    ``anchor_mileage``), never both. Soft-deleted schedules keep
    ``is_active = false`` so historical reminders can still point at them.
    """
    __tablename__ = "service_schedules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    program_id = Column(UUID(as_uuid=True), ForeignKey("service_programs.id", ondelete="CASCADE"), nullable=False)
    name = Column(Text, nullable=False)
    schedule_type = Column(Enum(ScheduleType), nullable=False)

    # time-based
    interval_value = Column(Integer)
    interval_unit = Column(Enum(TimeUnit))
    buffer_value = Column(Integer)
    buffer_unit = Column(Enum(TimeUnit))
    anchor_date = Column(Date)

    # mileage-based
    mileage_interval = Column(Integer)
    mileage_buffer = Column(Integer)
    anchor_mileage = Column(Integer)      # None = vehicle mileage + interval

    is_active = Column(Boolean, nullable=False, server_default=text("true"), default=True)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    program = relationship("ServiceProgram", back_populates="schedules")
    tasks = relationship("ServiceTask", secondary=schedule_tasks, order_by="ServiceTask.name")
    reminders = relationship("ServiceReminder", back_populates="schedule")

    __table_args__ = (
        CheckConstraint(
            "(schedule_type = 'TIME'"
            " AND interval_value IS NOT NULL AND interval_unit IS NOT NULL"
            " AND buffer_value IS NOT NULL AND buffer_unit IS NOT NULL"
            " AND anchor_date IS NOT NULL"
            " AND mileage_interval IS NULL AND mileage_buffer IS NULL AND anchor_mileage IS NULL)"
            " OR (schedule_type = 'MILEAGE'"
            " AND mileage_interval IS NOT NULL AND mileage_buffer IS NOT NULL"
            " AND interval_value IS NULL AND interval_unit IS NULL"
            " AND buffer_value IS NULL AND buffer_unit IS NULL AND anchor_date IS NULL)",
            name="service_schedules_one_variant",
        ),
        CheckConstraint(
            "(interval_value IS NULL OR interval_value > 0)"
            " AND (buffer_value IS NULL OR buffer_value > 0)"
            " AND (mileage_interval IS NULL OR mileage_interval > 0)"
            " AND (mileage_buffer IS NULL OR mileage_buffer > 0)",
            name="service_schedules_positive_values",
        ),
    )


Index("ix_service_schedules_program_active", ServiceSchedule.program_id, ServiceSchedule.is_active)
