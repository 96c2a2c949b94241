from datetime import date, time
from unittest.mock import AsyncMock, patch

from app.models.appointment import Appointment, AppointmentStatus
from app.services.reminders import (
    due_reminders,
    mark_due_reminders,
    send_appointment_reminders,
)

TODAY = date(2025, 3, 9)
TOMORROW = date(2025, 3, 10)


def appointment(appointment_id, day, at, status="pending", reminder_sent=False):
    return Appointment(
        id=appointment_id,
        date=day,
        time=at,
        status=status,
        reminder_sent=reminder_sent,
    )


class TestDueReminders:
    def test_picks_tomorrows_active_unreminded(self):
        appointments = [
            appointment(1, TOMORROW, time(12, 0)),
            appointment(2, TOMORROW, time(9, 0)),
            appointment(3, TOMORROW, time(10, 0), status="cancelled"),
            appointment(4, TOMORROW, time(11, 0), reminder_sent=True),
            appointment(5, TODAY, time(9, 0)),
            appointment(6, date(2025, 3, 11), time(9, 0)),
        ]

        due = due_reminders(appointments, TODAY)

        assert [a.id for a in due] == [2, 1]

    def test_days_ahead(self):
        appointments = [appointment(1, date(2025, 3, 12), time(9, 0))]

        assert due_reminders(appointments, TODAY, days_ahead=3) == appointments
        assert due_reminders(appointments, TODAY, days_ahead=1) == []


class TestMarkDueReminders:
    async def test_marks_and_persists(self, db, make_appointment):
        due = await make_appointment(TOMORROW, "10:00")
        await make_appointment(TOMORROW, "11:00", AppointmentStatus.CANCELLED)

        marked = await mark_due_reminders(db, today=TODAY, days_ahead=1)

        assert [a.id for a in marked] == [due.id]
        await db.refresh(due)
        assert due.reminder_sent is True
        assert due.reminder_sent_at is not None

        # A second run finds nothing left to send
        assert await mark_due_reminders(db, today=TODAY, days_ahead=1) == []


class TestReminderTask:
    def test_task_runs_reminder_pass(self):
        with patch(
            "app.services.reminders._run_reminders", new=AsyncMock(return_value=3)
        ) as run:
            result = send_appointment_reminders.apply().get()

        assert result == 3
        run.assert_awaited_once()

    def test_task_is_registered_under_module_path(self):
        assert (
            send_appointment_reminders.name
            == "app.services.reminders.send_appointment_reminders"
        )
