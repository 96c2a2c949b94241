from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.core.config import settings
from app.core.exceptions import (
    AppointmentValidationError,
    NotFoundError,
    SlotConflictError,
)
from app.models.appointment import Appointment, AppointmentStatus
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentDayGroup,
    AppointmentFilters,
    AppointmentSearch,
    AppointmentStats,
    AppointmentStatusTransition,
    AppointmentUpdate,
    NormalizedAppointment,
)
from app.schemas.scheduling import CalendarMonth
from app.services.calendar import group_by_day, month_grid
from app.services.client import client_service
from app.services.scheduling import SchedulingEngineService
from app.services.wash_type import WashTypeService
from app.utils.dates import format_currency, format_date, format_time
from app.utils.validation import phone_digits, validate_appointment

logger = structlog.get_logger(__name__)


class AppointmentService:
    """Appointment management: validated CRUD, status changes and calendar views.

    Every write goes through the validator and the slot check; the partial
    unique index on (date, time) is the final word when two requests race
    for the same slot.
    """

    def __init__(
        self,
        db: AsyncSession,
        scheduling_engine: Optional[SchedulingEngineService] = None,
    ):
        self.db = db
        self.scheduling_engine = scheduling_engine or SchedulingEngineService(db)

    async def create_appointment(
        self, appointment_data: AppointmentCreate, today: Optional[date] = None
    ) -> Appointment:
        """Validate, check the slot and store a new appointment."""

        wash_types = await WashTypeService.get_wash_types(self.db)
        normalized = validate_appointment(appointment_data, wash_types, today=today)

        await self._ensure_slot_bookable(normalized)

        initial_status = (
            AppointmentStatus.CONFIRMED
            if settings.APPOINTMENTS_AUTO_CONFIRM
            else AppointmentStatus.PENDING
        )
        appointment = Appointment(status=initial_status.value, reminder_sent=False)
        self._apply_fields(appointment, normalized)

        client = await client_service.get_client_by_phone(self.db, normalized.phone)
        if client:
            appointment.client_id = client.id

        self.db.add(appointment)
        await self._commit_slot(normalized)

        logger.info(
            "Appointment created",
            appointment_id=appointment.id,
            date=normalized.date.isoformat(),
            time=format_time(normalized.time),
            status=appointment.status,
        )
        return await self.get_appointment(appointment.id)

    async def get_appointment(self, appointment_id: int) -> Appointment:
        """Get appointment by id or raise NotFoundError."""
        query = (
            select(Appointment)
            .options(joinedload(Appointment.wash_type))
            .where(Appointment.id == appointment_id)
            .execution_options(populate_existing=True)
        )

        result = await self.db.execute(query)
        appointment = result.unique().scalar_one_or_none()
        if appointment is None:
            raise NotFoundError("Appointment", appointment_id)
        return appointment

    async def get_appointments(
        self, search: AppointmentSearch
    ) -> tuple[list[Appointment], int]:
        """Get appointments with filtering, search, and pagination."""

        query = select(Appointment).options(joinedload(Appointment.wash_type))

        # Apply filters
        query = self._apply_filters(query, search.filters)

        # Apply search
        if search.query:
            query = self._apply_search(query, search.query)

        # Count total records
        count_query = select(func.count()).select_from(query.subquery())
        total_count = (await self.db.execute(count_query)).scalar()

        # Apply sorting
        query = self._apply_sorting(query, search.sort_order)

        # Apply pagination
        offset = (search.page - 1) * search.page_size
        query = query.offset(offset).limit(search.page_size)

        result = await self.db.execute(query)
        appointments = result.unique().scalars().all()

        return list(appointments), total_count

    async def update_appointment(
        self,
        appointment_id: int,
        update_data: AppointmentUpdate,
        today: Optional[date] = None,
    ) -> Appointment:
        """Replace every editable field of an appointment.

        The record is re-validated as a whole. Past dates and the slot check
        only apply when the date or time actually changes, so an old
        appointment can still have its notes corrected.
        """

        appointment = await self.get_appointment(appointment_id)
        wash_types = await WashTypeService.get_wash_types(self.db)

        # Validate once without the future-date rule to find out what moved
        normalized = validate_appointment(
            update_data, wash_types, today=today, require_future=False
        )
        slot_changed = (
            normalized.date != appointment.date
            or normalized.time != appointment.time.replace(second=0, microsecond=0)
        )

        if slot_changed:
            validate_appointment(update_data, wash_types, today=today)
            if appointment.is_active:
                await self._ensure_slot_bookable(
                    normalized, exclude_appointment_id=appointment.id
                )

        self._apply_fields(appointment, normalized)
        await self._commit_slot(normalized)

        logger.info(
            "Appointment updated",
            appointment_id=appointment_id,
            slot_changed=slot_changed,
        )
        return await self.get_appointment(appointment_id)

    async def transition_appointment_status(
        self, appointment_id: int, transition: AppointmentStatusTransition
    ) -> Appointment:
        """Move an appointment along the status graph."""

        appointment = await self.get_appointment(appointment_id)
        previous = appointment.status

        # Raises IllegalTransitionError on edges outside the graph
        appointment.transition_to(transition.new_status, transition.notes)

        await self.db.commit()

        logger.info(
            "Appointment status changed",
            appointment_id=appointment_id,
            from_status=previous,
            to_status=appointment.status,
        )
        return await self.get_appointment(appointment_id)

    async def cancel_appointment(
        self, appointment_id: int, reason: Optional[str] = None
    ) -> Appointment:
        """Cancel an appointment, freeing its slot."""
        note = f"[CANCELLED] {reason.strip()}" if reason and reason.strip() else None
        transition = AppointmentStatusTransition(
            new_status=AppointmentStatus.CANCELLED, notes=note
        )
        return await self.transition_appointment_status(appointment_id, transition)

    async def delete_appointment(self, appointment_id: int) -> None:
        """Remove the appointment for good."""

        appointment = await self.get_appointment(appointment_id)
        await self.db.delete(appointment)
        await self.db.commit()

        logger.info("Appointment deleted", appointment_id=appointment_id)

    async def get_appointments_grouped_by_date(
        self, filters: Optional[AppointmentFilters] = None
    ) -> list[AppointmentDayGroup]:
        """Appointments bucketed per day, newest day first, each day by time."""

        query = select(Appointment).options(joinedload(Appointment.wash_type))
        query = self._apply_filters(query, filters or AppointmentFilters())
        query = query.order_by(Appointment.time, Appointment.id)

        result = await self.db.execute(query)
        appointments = result.unique().scalars().all()

        groups: dict[date, list[Appointment]] = {}
        for appointment in appointments:
            groups.setdefault(appointment.date, []).append(appointment)

        return [
            AppointmentDayGroup(
                date=day, label=format_date(day), appointments=groups[day]
            )
            for day in sorted(groups, reverse=True)
        ]

    async def get_appointments_by_phone(self, phone: str) -> list[Appointment]:
        """Appointments whose phone matches once formatting is ignored."""
        digits = phone_digits(phone)
        if not digits:
            return []

        result = await self.db.execute(
            select(Appointment)
            .options(joinedload(Appointment.wash_type))
            .order_by(Appointment.date.desc(), Appointment.time.desc())
        )
        return [
            appointment
            for appointment in result.unique().scalars().all()
            if phone_digits(appointment.phone) == digits
        ]

    async def get_upcoming_appointments(
        self, days: int = 7, today: Optional[date] = None
    ) -> list[Appointment]:
        """Active appointments from today through ``today + days``."""
        start = today or date.today()
        end = start + timedelta(days=days)

        result = await self.db.execute(
            select(Appointment)
            .options(joinedload(Appointment.wash_type))
            .where(
                Appointment.date >= start,
                Appointment.date <= end,
                Appointment.status != AppointmentStatus.CANCELLED.value,
            )
            .order_by(Appointment.date, Appointment.time, Appointment.id)
        )
        return list(result.unique().scalars().all())

    async def get_appointment_stats(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> AppointmentStats:
        """Counts per status and revenue of completed appointments."""

        query = select(Appointment).options(joinedload(Appointment.wash_type))

        if start_date:
            query = query.where(Appointment.date >= start_date)
        if end_date:
            query = query.where(Appointment.date <= end_date)

        result = await self.db.execute(query)
        appointments = result.unique().scalars().all()

        def count(status: AppointmentStatus) -> int:
            return sum(1 for apt in appointments if apt.status == status.value)

        total_appointments = len(appointments)
        cancelled_appointments = count(AppointmentStatus.CANCELLED)

        total_revenue = sum(
            (
                Decimal(apt.wash_type.price)
                for apt in appointments
                if apt.status == AppointmentStatus.COMPLETED.value and apt.wash_type
            ),
            Decimal("0"),
        )

        cancellation_rate = (
            cancelled_appointments / total_appointments if total_appointments > 0 else 0
        )

        return AppointmentStats(
            total_appointments=total_appointments,
            pending_appointments=count(AppointmentStatus.PENDING),
            confirmed_appointments=count(AppointmentStatus.CONFIRMED),
            completed_appointments=count(AppointmentStatus.COMPLETED),
            cancelled_appointments=cancelled_appointments,
            total_revenue=total_revenue,
            total_revenue_display=format_currency(total_revenue),
            cancellation_rate=round(cancellation_rate, 4),
        )

    async def get_calendar_month(self, year: int, month: int) -> CalendarMonth:
        """Month grid plus the appointments of each day."""
        grid = month_grid(year, month)
        appointments = await self.scheduling_engine.get_appointments_between(
            grid[0].date, grid[-1].date
        )
        return CalendarMonth(
            year=year,
            month=month,
            grid=grid,
            days=group_by_day(appointments, year, month),
        )

    # Helper methods
    async def _ensure_slot_bookable(
        self,
        normalized: NormalizedAppointment,
        exclude_appointment_id: Optional[int] = None,
    ) -> None:
        """Reject closed days and off-grid times, then check the slot."""

        engine = self.scheduling_engine
        errors = []
        if not engine.is_open(normalized.date):
            errors.append(
                {"field": "date", "message": "The car wash is closed on that day"}
            )
        if not engine.is_on_grid(normalized.time, normalized.date):
            errors.append(
                {"field": "time", "message": "Time is not one of the bookable slots"}
            )
        if errors:
            raise AppointmentValidationError(errors)

        if not await engine.is_slot_bookable(
            normalized.date, normalized.time, exclude_appointment_id
        ):
            logger.warning(
                "Slot already booked",
                date=normalized.date.isoformat(),
                time=format_time(normalized.time),
            )
            raise SlotConflictError(normalized.date, normalized.time)

    async def _commit_slot(self, normalized: NormalizedAppointment) -> None:
        try:
            await self.db.flush()
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning(
                "Slot taken concurrently",
                date=normalized.date.isoformat(),
                time=format_time(normalized.time),
            )
            raise SlotConflictError(normalized.date, normalized.time) from None

    @staticmethod
    def _apply_fields(
        appointment: Appointment, normalized: NormalizedAppointment
    ) -> None:
        for field in NormalizedAppointment.model_fields:
            setattr(appointment, field, getattr(normalized, field))

    def _apply_filters(self, query, filters: AppointmentFilters):
        """Apply filters to appointment query."""

        if filters.date:
            query = query.where(Appointment.date == filters.date)
        if filters.start_date:
            query = query.where(Appointment.date >= filters.start_date)
        if filters.end_date:
            query = query.where(Appointment.date <= filters.end_date)
        if filters.status:
            query = query.where(Appointment.status == filters.status.value)
        if filters.phone:
            query = query.where(Appointment.phone.contains(filters.phone.strip()))
        if filters.wash_type_id:
            query = query.where(Appointment.wash_type_id == filters.wash_type_id)

        return query

    def _apply_search(self, query, search_query: str):
        """Apply search to appointment query."""
        search_term = f"%{search_query.lower()}%"

        # Search in client name, phone, email, vehicle and plate
        query = query.where(
            or_(
                func.lower(Appointment.client_name).like(search_term),
                func.lower(Appointment.phone).like(search_term),
                func.lower(Appointment.email).like(search_term),
                func.lower(Appointment.vehicle_model).like(search_term),
                func.lower(Appointment.license_plate).like(search_term),
            )
        )

        return query

    def _apply_sorting(self, query, sort_order: str):
        """Apply sorting to appointment query."""

        if sort_order == "desc":
            return query.order_by(
                Appointment.date.desc(), Appointment.time.desc(), Appointment.id.desc()
            )
        return query.order_by(Appointment.date, Appointment.time, Appointment.id)

