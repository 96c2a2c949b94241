"""Appointment reminder selection and the periodic Celery task that uses it.

Delivery itself belongs to the mail integration; this module decides which
appointments are due a reminder and records that one was issued.
"""

import asyncio
from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.celery import celery_app
from app.core.config import settings
from app.core.database import AsyncSessionLocal, engine
from app.models.appointment import Appointment, AppointmentStatus
from app.utils.dates import format_date, format_time

logger = structlog.get_logger(__name__)


def due_reminders(
    appointments: Iterable[Any], today: date, days_ahead: int = 1
) -> list[Any]:
    """Active appointments on ``today + days_ahead`` not yet reminded."""
    target = today + timedelta(days=days_ahead)
    return sorted(
        (
            a
            for a in appointments
            if a.date == target
            and a.status != AppointmentStatus.CANCELLED.value
            and not a.reminder_sent
        ),
        key=lambda a: a.time,
    )


async def mark_due_reminders(
    db: AsyncSession, today: Optional[date] = None, days_ahead: Optional[int] = None
) -> list[Appointment]:
    """Flag the due appointments as reminded and return them."""
    today = today or date.today()
    days_ahead = settings.REMINDER_DAYS_AHEAD if days_ahead is None else days_ahead
    target = today + timedelta(days=days_ahead)

    result = await db.execute(select(Appointment).where(Appointment.date == target))
    due = due_reminders(result.unique().scalars().all(), today, days_ahead)

    sent_at = datetime.now(timezone.utc)
    for appointment in due:
        appointment.reminder_sent = True
        appointment.reminder_sent_at = sent_at
        logger.info(
            "Appointment reminder issued",
            appointment_id=appointment.id,
            email=appointment.email,
            date=format_date(appointment.date),
            time=format_time(appointment.time),
        )

    if due:
        await db.commit()
    return due


async def _run_reminders() -> int:
    try:
        async with AsyncSessionLocal() as db:
            due = await mark_due_reminders(db)
        return len(due)
    finally:
        # Each task run gets its own event loop; drop connections bound to it
        await engine.dispose()


@celery_app.task(bind=True)
def send_appointment_reminders(self):
    """Periodic task: issue reminders for tomorrow's appointments."""
    count = asyncio.run(_run_reminders())
    logger.info("Reminder run finished", task_id=self.request.id, reminders=count)
    return count
