from datetime import date, time
from typing import Optional


class SchedulingError(Exception):
    """Base class for errors surfaced to API callers as structured rejections."""


class AppointmentValidationError(SchedulingError, ValueError):
    """One or more appointment fields are invalid."""

    def __init__(self, errors: list[dict[str, str]]):
        self.errors = errors
        messages = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
        super().__init__(f"Appointment validation failed: {messages}")


class SlotConflictError(SchedulingError):
    """Another active appointment already occupies the requested slot."""

    def __init__(self, slot_date: date, slot_time: time):
        self.date = slot_date
        self.time = slot_time
        super().__init__(
            f"Slot {slot_date.isoformat()} {slot_time.strftime('%H:%M')} "
            "is already booked"
        )


class IllegalTransitionError(SchedulingError):
    """The requested status change is not a legal edge."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition from {current} to {target}")


class NotFoundError(SchedulingError):
    """The referenced record does not exist."""

    def __init__(self, entity: str, entity_id: Optional[int] = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class DateParseError(ValueError):
    """A date or time string is not in a supported format."""

    def __init__(self, value: str, expected: str):
        self.value = value
        super().__init__(f"Invalid value {value!r}, expected {expected}")
