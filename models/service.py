# models/service.py
import uuid
import enum
from sqlalchemy import (
    Column, Text, TIMESTAMP, Date, ForeignKey,
    Integer, Enum, JSON, CheckConstraint, or_,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy import Index

from .base import Base
from .schedule import ScheduleType, TimeUnit


class ReminderStatus(enum.Enum):
    UPCOMING = "upcoming"
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


FINAL_STATUSES = (ReminderStatus.COMPLETED, ReminderStatus.CANCELLED)


class ServiceReminder(Base):
    """
    One maintenance occurrence for a (vehicle, schedule) pair.

    Exactly one of ``due_date`` / ``due_mileage`` is set, mirroring the
    schedule type. Interval, buffer and task fields are a snapshot taken when
    the row was generated so later schedule edits never rewrite history.

    A reminder is *final* once it is completed, cancelled or linked to a work
    order; ``is_final`` is the only check the sync engine uses before it
    touches a row.
    """
    __tablename__ = "service_reminders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    vehicle_id = Column(UUID(as_uuid=True), ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False)
    schedule_id = Column(UUID(as_uuid=True), ForeignKey("service_schedules.id", ondelete="CASCADE"), nullable=False)
    program_id = Column(UUID(as_uuid=True), ForeignKey("service_programs.id", ondelete="CASCADE"), nullable=False)
    work_order_id = Column(UUID(as_uuid=True), ForeignKey("work_orders.id", ondelete="SET NULL"), nullable=True)

    schedule_type = Column(Enum(ScheduleType), nullable=False)
    due_date = Column(Date)
    due_mileage = Column(Integer)
    status = Column(Enum(ReminderStatus), nullable=False)

    # snapshot of the schedule at generation time
    schedule_name = Column(Text, nullable=False)
    interval_value = Column(Integer)
    interval_unit = Column(Enum(TimeUnit))
    buffer_value = Column(Integer)
    buffer_unit = Column(Enum(TimeUnit))
    mileage_interval = Column(Integer)
    mileage_buffer = Column(Integer)
    tasks = Column(JSON, nullable=False, default=list)   # [{id, name, category, estimated_cost, estimated_labour_hours}]

    completed_on = Column(Date)
    cancel_reason = Column(Text)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    vehicle = relationship("Vehicle", back_populates="service_reminders")
    schedule = relationship("ServiceSchedule", back_populates="reminders")
    work_order = relationship("WorkOrder", back_populates="service_reminders")

    __table_args__ = (
        CheckConstraint(
            "(due_date IS NOT NULL AND due_mileage IS NULL)"
            " OR (due_date IS NULL AND due_mileage IS NOT NULL)",
            name="service_reminders_one_due_value",
        ),
    )

    @hybrid_property
    def is_final(self) -> bool:
        return self.status in FINAL_STATUSES or self.work_order_id is not None

    @is_final.expression
    def is_final(cls):
        return or_(cls.status.in_(FINAL_STATUSES), cls.work_order_id.isnot(None))

    @property
    def due_value(self):
        """The occurrence's due value: a date for time schedules, an int for mileage."""
        return self.due_date if self.due_date is not None else self.due_mileage


# One row per occurrence; NULLs in the other due column never collide.
Index(
    "uq_service_reminders_due_date",
    ServiceReminder.vehicle_id, ServiceReminder.schedule_id, ServiceReminder.due_date,
    unique=True,
    postgresql_where=ServiceReminder.due_date.isnot(None),
    sqlite_where=ServiceReminder.due_date.isnot(None),
)
Index(
    "uq_service_reminders_due_mileage",
    ServiceReminder.vehicle_id, ServiceReminder.schedule_id, ServiceReminder.due_mileage,
    unique=True,
    postgresql_where=ServiceReminder.due_mileage.isnot(None),
    sqlite_where=ServiceReminder.due_mileage.isnot(None),
)
Index("ix_service_reminders_vehicle_status", ServiceReminder.vehicle_id, ServiceReminder.status)
