# services/errors.py
from __future__ import annotations
from typing import Iterable, List


class ValidationError(ValueError):
    """Raised when a request or schedule definition breaks a business rule. Nothing is written."""
    def __init__(self, messages: Iterable[str] | str):
        if isinstance(messages, str):
            messages = [messages]
        self.messages: List[str] = list(messages)
        super().__init__("; ".join(self.messages))


class NotFoundError(LookupError):
    """Raised when a referenced program, schedule, vehicle, task, reminder or work order is missing."""
    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConsistencyConflict(Exception):
    """Raised when an insert collides with an existing reminder on (vehicle, schedule, due value)."""
    def __init__(self, vehicle_id, schedule_id, due_value):
        self.vehicle_id = vehicle_id
        self.schedule_id = schedule_id
        self.due_value = due_value
        super().__init__(
            f"Reminder for vehicle {vehicle_id} / schedule {schedule_id} due at {due_value} already exists"
        )
