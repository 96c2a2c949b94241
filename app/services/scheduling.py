import calendar
from collections.abc import Iterable
from datetime import date, time
from typing import Any, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointment import Appointment, AppointmentStatus
from app.schemas.scheduling import BusinessHours, OccupancyStats
from app.services.holidays import HolidayService

logger = structlog.get_logger(__name__)


def _status_value(appointment: Any) -> str:
    status = appointment.status
    return getattr(status, "value", status)


def is_active_appointment(appointment: Any) -> bool:
    return _status_value(appointment) != AppointmentStatus.CANCELLED.value


def generate_slots(
    business_hours: BusinessHours,
    slot_duration_minutes: Optional[int] = None,
    day: Optional[date] = None,
) -> list[time]:
    """Every slot start of each shift, opening inclusive and closing exclusive.

    ``day`` selects Saturday hours when they are configured; without it the
    weekday shifts are used.
    """
    step = (
        business_hours.slot_duration_minutes
        if slot_duration_minutes is None
        else slot_duration_minutes
    )
    if step <= 0:
        raise ValueError("slot_duration_minutes must be positive")

    slots = []
    for opening, closing in business_hours.shifts_for(day):
        start = opening.hour * 60 + opening.minute
        end = closing.hour * 60 + closing.minute
        slots.extend(time(minute // 60, minute % 60) for minute in range(start, end, step))
    return slots


def occupied_times(day: date, appointments: Iterable[Any]) -> set[time]:
    """Start times held by active appointments on ``day``."""
    return {
        a.time.replace(second=0, microsecond=0)
        for a in appointments
        if a.date == day and is_active_appointment(a)
    }


def available_slots(
    day: date,
    appointments: Iterable[Any],
    business_hours: BusinessHours,
    slot_duration_minutes: Optional[int] = None,
) -> list[time]:
    """Free slot starts on ``day`` in ascending order.

    A slot is taken only when an active appointment starts exactly at it.
    The result is a new list on every call and depends only on the inputs.
    """
    taken = occupied_times(day, appointments)
    return [
        slot
        for slot in generate_slots(business_hours, slot_duration_minutes, day)
        if slot not in taken
    ]


def check_availability(day: date, slot_time: time, appointments: Iterable[Any]) -> bool:
    """True iff no active appointment occupies exactly (day, slot_time)."""
    return slot_time.replace(second=0, microsecond=0) not in occupied_times(
        day, appointments
    )


class SchedulingEngineService:
    """Availability queries for the car wash, backed by stored appointments."""

    def __init__(
        self, db: AsyncSession, business_hours: Optional[BusinessHours] = None
    ):
        self.db = db
        self.business_hours = business_hours or BusinessHours.from_settings()

    def is_open(self, day: date) -> bool:
        """Closed on configured weekdays and on public holidays."""
        if day.weekday() in self.business_hours.closed_weekdays:
            return False
        return not HolidayService.is_holiday(day, self.business_hours.holiday_country)

    def is_on_grid(self, slot_time: time, day: Optional[date] = None) -> bool:
        return slot_time in generate_slots(self.business_hours, day=day)

    async def get_appointments_between(
        self, start: date, end: date
    ) -> list[Appointment]:
        result = await self.db.execute(
            select(Appointment)
            .where(Appointment.date >= start, Appointment.date <= end)
            .order_by(Appointment.date, Appointment.time, Appointment.id)
        )
        return list(result.unique().scalars().all())

    async def get_appointments_on(self, day: date) -> list[Appointment]:
        return await self.get_appointments_between(day, day)

    async def get_available_slots(self, day: date) -> list[time]:
        """Free slots for ``day``; empty when the business is closed."""
        if not self.is_open(day):
            logger.debug("Business closed", date=day.isoformat())
            return []

        appointments = await self.get_appointments_on(day)
        slots = available_slots(day, appointments, self.business_hours)
        logger.debug(
            "Computed available slots", date=day.isoformat(), free_slots=len(slots)
        )
        return slots

    async def is_slot_available(self, day: date, slot_time: time) -> bool:
        appointments = await self.get_appointments_on(day)
        return check_availability(day, slot_time, appointments)

    async def is_slot_bookable(
        self, day: date, slot_time: time, exclude_appointment_id: Optional[int] = None
    ) -> bool:
        """Open day, on the slot grid, and not held by another appointment."""
        if not self.is_open(day) or not self.is_on_grid(slot_time, day):
            return False

        appointments = [
            a
            for a in await self.get_appointments_on(day)
            if a.id != exclude_appointment_id
        ]
        return check_availability(day, slot_time, appointments)

    async def next_available_slot(self, day: date, after: time) -> Optional[time]:
        """First free slot on ``day`` strictly after ``after``."""
        for slot in await self.get_available_slots(day):
            if slot > after:
                return slot
        return None

    async def get_unavailable_days(
        self, year: int, month: int, today: Optional[date] = None
    ) -> list[date]:
        """Days of the month that cannot be booked: past, closed or full."""
        today = today or date.today()
        last_day = calendar.monthrange(year, month)[1]
        first, last = date(year, month, 1), date(year, month, last_day)

        appointments = await self.get_appointments_between(first, last)

        unavailable = []
        for day_number in range(1, last_day + 1):
            day = date(year, month, day_number)
            if day < today or not self.is_open(day):
                unavailable.append(day)
                continue
            taken = occupied_times(day, appointments)
            day_slots = generate_slots(self.business_hours, day=day)
            if all(slot in taken for slot in day_slots):
                unavailable.append(day)

        logger.info(
            "Computed unavailable days",
            year=year,
            month=month,
            unavailable=len(unavailable),
        )
        return unavailable

    async def get_occupancy(self, day: date) -> OccupancyStats:
        all_slots = generate_slots(self.business_hours, day=day)
        taken = occupied_times(day, await self.get_appointments_on(day))
        occupied = len([slot for slot in all_slots if slot in taken])
        total = len(all_slots)
        percentage = round(occupied / total * 100, 2) if total else 0.0

        return OccupancyStats(
            date=day,
            total_slots=total,
            occupied_slots=occupied,
            free_slots=total - occupied,
            occupancy_percentage=percentage,
        )
