import datetime as dt
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from app.core.config import settings
from app.schemas.appointment import Appointment

SATURDAY = 5


class BusinessHours(BaseModel):
    """Opening hours and slot grid of the car wash.

    A working day is one shift (``opening_time`` to ``closing_time``) plus an
    optional afternoon shift after a midday break. Saturdays may run their
    own single shift instead.
    """

    model_config = ConfigDict(frozen=True)

    opening_time: dt.time = dt.time(9, 0)
    closing_time: dt.time = dt.time(19, 0)
    afternoon_opening_time: Optional[dt.time] = None
    afternoon_closing_time: Optional[dt.time] = None
    saturday_opening_time: Optional[dt.time] = None
    saturday_closing_time: Optional[dt.time] = None
    slot_duration_minutes: int = Field(30, gt=0)
    closed_weekdays: tuple[int, ...] = (6,)
    holiday_country: Optional[str] = None

    @model_validator(mode="after")
    def validate_range(self):
        if self.closing_time <= self.opening_time:
            raise ValueError("closing_time must be after opening_time")

        if (self.afternoon_opening_time is None) != (self.afternoon_closing_time is None):
            raise ValueError("afternoon shift needs both opening and closing time")
        if self.afternoon_opening_time is not None:
            if self.afternoon_opening_time < self.closing_time:
                raise ValueError("afternoon shift must start after the morning closes")
            if self.afternoon_closing_time <= self.afternoon_opening_time:
                raise ValueError(
                    "afternoon_closing_time must be after afternoon_opening_time"
                )

        if (self.saturday_opening_time is None) != (self.saturday_closing_time is None):
            raise ValueError("Saturday hours need both opening and closing time")
        if (
            self.saturday_opening_time is not None
            and self.saturday_closing_time <= self.saturday_opening_time
        ):
            raise ValueError("saturday_closing_time must be after saturday_opening_time")
        return self

    def shifts_for(self, day: Optional[dt.date] = None) -> list[tuple[dt.time, dt.time]]:
        """Working shifts as (start, end) pairs; weekday hours when no day is given."""
        if (
            day is not None
            and day.weekday() == SATURDAY
            and self.saturday_opening_time is not None
        ):
            return [(self.saturday_opening_time, self.saturday_closing_time)]

        shifts = [(self.opening_time, self.closing_time)]
        if self.afternoon_opening_time is not None:
            shifts.append((self.afternoon_opening_time, self.afternoon_closing_time))
        return shifts

    @classmethod
    def from_settings(cls) -> "BusinessHours":
        return cls(
            opening_time=settings.OPENING_TIME,
            closing_time=settings.CLOSING_TIME,
            afternoon_opening_time=settings.AFTERNOON_OPENING_TIME,
            afternoon_closing_time=settings.AFTERNOON_CLOSING_TIME,
            saturday_opening_time=settings.SATURDAY_OPENING_TIME,
            saturday_closing_time=settings.SATURDAY_CLOSING_TIME,
            slot_duration_minutes=settings.SLOT_DURATION_MINUTES,
            closed_weekdays=tuple(settings.CLOSED_WEEKDAYS),
            holiday_country=settings.HOLIDAY_COUNTRY or None,
        )

    @field_serializer(
        "opening_time",
        "closing_time",
        "afternoon_opening_time",
        "afternoon_closing_time",
        "saturday_opening_time",
        "saturday_closing_time",
    )
    def serialize_time(self, value: Optional[dt.time]) -> Optional[str]:
        return value.strftime("%H:%M") if value is not None else None


class AvailableSlots(BaseModel):
    date: dt.date
    is_open: bool
    slots: List[dt.time]

    @field_serializer("slots")
    def serialize_slots(self, value: List[dt.time]) -> List[str]:
        return [slot.strftime("%H:%M") for slot in value]


class SlotAvailability(BaseModel):
    date: dt.date
    time: dt.time
    free: bool  # no active appointment starts at this time
    available: bool  # free, on an open day and on the slot grid

    @field_serializer("time")
    def serialize_time(self, value: dt.time) -> str:
        return value.strftime("%H:%M")


class NextAvailableSlot(BaseModel):
    date: dt.date
    after: dt.time
    next_slot: Optional[dt.time] = None

    @field_serializer("after", "next_slot")
    def serialize_time(self, value: Optional[dt.time]) -> Optional[str]:
        return value.strftime("%H:%M") if value else None


class UnavailableDays(BaseModel):
    year: int
    month: int
    unavailable_days: List[dt.date]


class OccupancyStats(BaseModel):
    date: dt.date
    total_slots: int
    occupied_slots: int
    free_slots: int
    occupancy_percentage: float


class DayCell(BaseModel):
    """One cell of the 6x7 month grid."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    belongs_to_displayed_month: bool


class CalendarMonth(BaseModel):
    year: int
    month: int
    grid: List[DayCell]
    days: Dict[int, List[Appointment]]
