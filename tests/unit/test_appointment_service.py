from datetime import date, time
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AppointmentValidationError,
    IllegalTransitionError,
    NotFoundError,
    SlotConflictError,
)
from app.models.appointment import Appointment, AppointmentStatus
from app.models.client import Client
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentSearch,
    AppointmentStatusTransition,
    AppointmentUpdate,
)
from app.schemas.scheduling import BusinessHours
from app.services.appointment import AppointmentService
from app.services.scheduling import SchedulingEngineService

TODAY = date(2025, 3, 1)
MONDAY = date(2025, 3, 10)
TUESDAY = date(2025, 3, 11)
SUNDAY = date(2025, 3, 16)


@pytest.fixture
def appointment_service(db: AsyncSession) -> AppointmentService:
    """Appointment service over the test database, no public holidays."""
    engine = SchedulingEngineService(db, BusinessHours(holiday_country=None))
    return AppointmentService(db, engine)


@pytest.fixture
def appointment_data(wash_types):
    def _data(**overrides) -> AppointmentCreate:
        fields = dict(
            client_name="Ana García",
            phone="600 123 456",
            email="ana@example.com",
            date=MONDAY.isoformat(),
            time="10:00",
            wash_type_id=wash_types[0].id,
            vehicle_model="Seat Ibiza",
            license_plate="1234abc",
        )
        fields.update(overrides)
        return AppointmentCreate(**fields)

    return _data


class TestAppointmentServiceCreate:
    """Test appointment creation functionality."""

    async def test_create_appointment_success(
        self, appointment_service, appointment_data, wash_types
    ):
        appointment = await appointment_service.create_appointment(
            appointment_data(), today=TODAY
        )

        assert appointment.id is not None
        assert appointment.status == AppointmentStatus.PENDING.value
        assert appointment.date == MONDAY
        assert appointment.time == time(10, 0)
        assert appointment.license_plate == "1234ABC"
        assert appointment.wash_type_name == wash_types[0].name
        assert appointment.client_id is None

    async def test_create_auto_confirmed(
        self, appointment_service, appointment_data, monkeypatch
    ):
        monkeypatch.setattr(settings, "APPOINTMENTS_AUTO_CONFIRM", True)

        appointment = await appointment_service.create_appointment(
            appointment_data(), today=TODAY
        )

        assert appointment.status == AppointmentStatus.CONFIRMED.value

    async def test_create_accepts_display_date(
        self, appointment_service, appointment_data
    ):
        appointment = await appointment_service.create_appointment(
            appointment_data(date="10/03/2025"), today=TODAY
        )

        assert appointment.date == MONDAY

    async def test_create_invalid_reports_every_field(
        self, appointment_service, appointment_data
    ):
        with pytest.raises(AppointmentValidationError) as exc_info:
            await appointment_service.create_appointment(
                appointment_data(client_name="", phone="123", email="bad"),
                today=TODAY,
            )

        fields = {error["field"] for error in exc_info.value.errors}
        assert fields == {"client_name", "phone", "email"}

    async def test_create_in_taken_slot_conflicts(
        self, appointment_service, appointment_data
    ):
        await appointment_service.create_appointment(appointment_data(), today=TODAY)

        with pytest.raises(SlotConflictError) as exc_info:
            await appointment_service.create_appointment(
                appointment_data(client_name="Luis"), today=TODAY
            )

        assert exc_info.value.date == MONDAY
        assert exc_info.value.time == time(10, 0)

    async def test_create_in_cancelled_slot_succeeds(
        self, appointment_service, appointment_data
    ):
        first = await appointment_service.create_appointment(
            appointment_data(), today=TODAY
        )
        await appointment_service.cancel_appointment(first.id, "Client called")

        second = await appointment_service.create_appointment(
            appointment_data(client_name="Luis"), today=TODAY
        )

        assert second.id != first.id
        assert second.is_active

    async def test_create_on_closed_day(self, appointment_service, appointment_data):
        with pytest.raises(AppointmentValidationError) as exc_info:
            await appointment_service.create_appointment(
                appointment_data(date=SUNDAY.isoformat()), today=TODAY
            )

        assert exc_info.value.errors[0]["field"] == "date"

    async def test_create_off_grid_time(self, appointment_service, appointment_data):
        with pytest.raises(AppointmentValidationError) as exc_info:
            await appointment_service.create_appointment(
                appointment_data(time="10:15"), today=TODAY
            )

        assert exc_info.value.errors[0]["field"] == "time"

    async def test_create_during_midday_break(self, db, appointment_data):
        split_hours = BusinessHours(
            opening_time=time(9, 0),
            closing_time=time(14, 0),
            afternoon_opening_time=time(17, 0),
            afternoon_closing_time=time(20, 0),
            holiday_country=None,
        )
        service = AppointmentService(db, SchedulingEngineService(db, split_hours))

        with pytest.raises(AppointmentValidationError) as exc_info:
            await service.create_appointment(
                appointment_data(time="15:00"), today=TODAY
            )
        assert exc_info.value.errors[0]["field"] == "time"

        booked = await service.create_appointment(
            appointment_data(time="17:30"), today=TODAY
        )
        assert booked.time == time(17, 30)

    async def test_create_links_existing_client_by_phone(
        self, db, appointment_service, appointment_data
    ):
        client = Client(name="Ana García", phone="600-12-34-56")
        db.add(client)
        await db.commit()

        appointment = await appointment_service.create_appointment(
            appointment_data(phone="600123456"), today=TODAY
        )

        assert appointment.client_id == client.id


class TestAppointmentServiceQueries:
    async def test_get_missing_appointment(self, appointment_service):
        with pytest.raises(NotFoundError):
            await appointment_service.get_appointment(999)

    async def test_get_appointments_filters_and_pagination(
        self, appointment_service, make_appointment
    ):
        await make_appointment(TUESDAY, "09:00", client_name="Luis Pérez")
        await make_appointment(MONDAY, "12:00", vehicle_model="Renault Clio")
        await make_appointment(MONDAY, "09:30", AppointmentStatus.CONFIRMED)

        appointments, total = await appointment_service.get_appointments(
            AppointmentSearch()
        )
        assert total == 3
        assert [(a.date, a.time) for a in appointments] == [
            (MONDAY, time(9, 30)),
            (MONDAY, time(12, 0)),
            (TUESDAY, time(9, 0)),
        ]

        appointments, total = await appointment_service.get_appointments(
            AppointmentSearch(filters=AppointmentFilters(date=MONDAY))
        )
        assert total == 2

        appointments, total = await appointment_service.get_appointments(
            AppointmentSearch(
                filters=AppointmentFilters(status=AppointmentStatus.CONFIRMED)
            )
        )
        assert total == 1
        assert appointments[0].time == time(9, 30)

        appointments, total = await appointment_service.get_appointments(
            AppointmentSearch(query="clio")
        )
        assert total == 1

        appointments, total = await appointment_service.get_appointments(
            AppointmentSearch(page=2, page_size=2, sort_order="desc")
        )
        assert total == 3
        assert [(a.date, a.time) for a in appointments] == [(MONDAY, time(9, 30))]

    async def test_grouped_by_date(self, appointment_service, make_appointment):
        await make_appointment(MONDAY, "12:00")
        await make_appointment(TUESDAY, "09:00")
        await make_appointment(MONDAY, "09:00", AppointmentStatus.CANCELLED)

        groups = await appointment_service.get_appointments_grouped_by_date()

        assert [g.date for g in groups] == [TUESDAY, MONDAY]
        assert groups[1].label == "10/03/2025"
        assert [a.time for a in groups[1].appointments] == [time(9, 0), time(12, 0)]

    async def test_by_phone_ignores_formatting(
        self, appointment_service, make_appointment
    ):
        await make_appointment(MONDAY, "09:00", phone="600 123 456")
        await make_appointment(TUESDAY, "09:00", phone="600-123-456")
        await make_appointment(TUESDAY, "10:00", phone="699 999 999")

        appointments = await appointment_service.get_appointments_by_phone("600123456")

        assert [a.date for a in appointments] == [TUESDAY, MONDAY]

    async def test_upcoming_skips_cancelled_and_out_of_range(
        self, appointment_service, make_appointment
    ):
        await make_appointment(MONDAY, "09:00")
        await make_appointment(MONDAY, "10:00", AppointmentStatus.CANCELLED)
        await make_appointment(date(2025, 3, 20), "09:00")
        await make_appointment(date(2025, 2, 20), "09:00")

        appointments = await appointment_service.get_upcoming_appointments(
            days=10, today=TODAY
        )

        assert [(a.date, a.time) for a in appointments] == [(MONDAY, time(9, 0))]

    async def test_stats(self, appointment_service, make_appointment, wash_types):
        priced = wash_types[0]
        await make_appointment(MONDAY, "09:00", AppointmentStatus.COMPLETED)
        await make_appointment(MONDAY, "09:30", AppointmentStatus.COMPLETED)
        await make_appointment(MONDAY, "10:00", AppointmentStatus.CANCELLED)
        await make_appointment(MONDAY, "10:30", AppointmentStatus.PENDING)

        stats = await appointment_service.get_appointment_stats()

        assert stats.total_appointments == 4
        assert stats.completed_appointments == 2
        assert stats.cancelled_appointments == 1
        assert stats.pending_appointments == 1
        assert stats.confirmed_appointments == 0
        assert stats.total_revenue == Decimal(priced.price) * 2
        assert stats.total_revenue_display == "46,00 €"
        assert stats.cancellation_rate == 0.25

    async def test_calendar_month(self, appointment_service, make_appointment):
        await make_appointment(MONDAY, "12:00")
        await make_appointment(MONDAY, "09:00")
        await make_appointment(date(2025, 4, 1), "09:00")

        month = await appointment_service.get_calendar_month(2025, 3)

        assert len(month.grid) == 42
        assert list(month.days) == [10]
        assert [a.time for a in month.days[10]] == [time(9, 0), time(12, 0)]


class TestAppointmentServiceUpdate:
    async def test_update_moves_slot(
        self, appointment_service, appointment_data, make_appointment
    ):
        created = await appointment_service.create_appointment(
            appointment_data(), today=TODAY
        )

        updated = await appointment_service.update_appointment(
            created.id,
            AppointmentUpdate(**appointment_data(time="11:00").model_dump()),
            today=TODAY,
        )

        assert updated.time == time(11, 0)

    async def test_update_into_taken_slot_conflicts(
        self, appointment_service, appointment_data, make_appointment
    ):
        await make_appointment(MONDAY, "11:00", phone="611 111 111")
        created = await appointment_service.create_appointment(
            appointment_data(), today=TODAY
        )

        with pytest.raises(SlotConflictError):
            await appointment_service.update_appointment(
                created.id,
                AppointmentUpdate(**appointment_data(time="11:00").model_dump()),
                today=TODAY,
            )

    async def test_update_keeping_slot_is_not_a_conflict(
        self, appointment_service, appointment_data
    ):
        created = await appointment_service.create_appointment(
            appointment_data(), today=TODAY
        )

        updated = await appointment_service.update_appointment(
            created.id,
            AppointmentUpdate(**appointment_data(notes="Extra dirty").model_dump()),
            today=TODAY,
        )

        assert updated.notes == "Extra dirty"

    async def test_past_appointment_notes_can_be_edited(
        self, appointment_service, appointment_data, make_appointment
    ):
        past = await make_appointment(date(2025, 2, 10), "10:00")

        updated = await appointment_service.update_appointment(
            past.id,
            AppointmentUpdate(
                **appointment_data(date="2025-02-10", notes="Paid").model_dump()
            ),
            today=TODAY,
        )

        assert updated.notes == "Paid"

    async def test_moving_into_the_past_is_rejected(
        self, appointment_service, appointment_data
    ):
        created = await appointment_service.create_appointment(
            appointment_data(), today=TODAY
        )

        with pytest.raises(AppointmentValidationError):
            await appointment_service.update_appointment(
                created.id,
                AppointmentUpdate(**appointment_data(date="2025-02-10").model_dump()),
                today=TODAY,
            )

    async def test_update_is_revalidated(self, appointment_service, appointment_data):
        created = await appointment_service.create_appointment(
            appointment_data(), today=TODAY
        )

        with pytest.raises(AppointmentValidationError):
            await appointment_service.update_appointment(
                created.id,
                AppointmentUpdate(**appointment_data(email="nope").model_dump()),
                today=TODAY,
            )

    async def test_update_missing(self, appointment_service, appointment_data):
        with pytest.raises(NotFoundError):
            await appointment_service.update_appointment(
                42, AppointmentUpdate(**appointment_data().model_dump()), today=TODAY
            )


class TestAppointmentServiceStatus:
    async def test_full_lifecycle(self, appointment_service, make_appointment):
        appointment = await make_appointment(MONDAY, "10:00")

        confirmed = await appointment_service.transition_appointment_status(
            appointment.id,
            AppointmentStatusTransition(new_status=AppointmentStatus.CONFIRMED),
        )
        assert confirmed.status == AppointmentStatus.CONFIRMED.value

        completed = await appointment_service.transition_appointment_status(
            appointment.id,
            AppointmentStatusTransition(new_status=AppointmentStatus.COMPLETED),
        )
        assert completed.status == AppointmentStatus.COMPLETED.value
        assert completed.previous_status == AppointmentStatus.CONFIRMED.value

    async def test_completed_cannot_be_cancelled(
        self, appointment_service, make_appointment
    ):
        appointment = await make_appointment(
            MONDAY, "10:00", AppointmentStatus.COMPLETED
        )

        with pytest.raises(IllegalTransitionError):
            await appointment_service.cancel_appointment(appointment.id)

        reloaded = await appointment_service.get_appointment(appointment.id)
        assert reloaded.status == AppointmentStatus.COMPLETED.value

    async def test_cancel_appends_reason(self, appointment_service, make_appointment):
        appointment = await make_appointment(MONDAY, "10:00", notes="Red car")

        cancelled = await appointment_service.cancel_appointment(
            appointment.id, "Client sick"
        )

        assert cancelled.status == AppointmentStatus.CANCELLED.value
        assert cancelled.notes == "Red car\n[CANCELLED] Client sick"

    async def test_delete_frees_slot(
        self, db, appointment_service, appointment_data
    ):
        created = await appointment_service.create_appointment(
            appointment_data(), today=TODAY
        )

        await appointment_service.delete_appointment(created.id)

        assert await db.get(Appointment, created.id) is None
        assert await appointment_service.scheduling_engine.is_slot_bookable(
            MONDAY, time(10, 0)
        )

    async def test_delete_missing(self, appointment_service):
        with pytest.raises(NotFoundError):
            await appointment_service.delete_appointment(123)


class TestAppointmentSlotConstraint:
    """The (date, time) unique index is the last guard against double booking."""

    async def test_second_active_row_rejected_by_database(self, db, make_appointment):
        await make_appointment(MONDAY, "10:00")

        with pytest.raises(IntegrityError):
            await make_appointment(MONDAY, "10:00", phone="611 222 333")
        await db.rollback()

    async def test_race_reported_as_slot_conflict(
        self, db, appointment_service, appointment_data, make_appointment
    ):
        # Another request booked the slot after our availability check passed
        await make_appointment(MONDAY, "10:00")

        with patch.object(
            appointment_service.scheduling_engine,
            "is_slot_bookable",
            new=AsyncMock(return_value=True),
        ):
            with pytest.raises(SlotConflictError) as exc_info:
                await appointment_service.create_appointment(
                    appointment_data(client_name="Luis"), today=TODAY
                )

        assert exc_info.value.date == MONDAY
        assert exc_info.value.time == time(10, 0)
        count = await db.execute(select(func.count()).select_from(Appointment))
        assert count.scalar() == 1

    async def test_cancelled_row_does_not_hold_the_slot(self, db, make_appointment):
        cancelled = await make_appointment(
            MONDAY, "10:00", AppointmentStatus.CANCELLED
        )

        active = await make_appointment(MONDAY, "10:00", phone="611 222 333")

        assert active.id != cancelled.id
        count = await db.execute(
            select(func.count())
            .select_from(Appointment)
            .where(Appointment.date == MONDAY, Appointment.time == time(10, 0))
        )
        assert count.scalar() == 2
