### models/__init__.py
from .base import Base
from .vehicle import Vehicle
from .program import ServiceProgram, ProgramVehicle, ServiceTask
from .schedule import ServiceSchedule, ScheduleType, TimeUnit, schedule_tasks
from .work_order import WorkOrder, WorkOrderStatus, CLOSED_WORK_ORDER_STATUSES
from .service import (
    ServiceReminder,
    ReminderStatus,
    FINAL_STATUSES,
)
