from celery import Celery
from celery.schedules import crontab

from app.core.config import settings

celery_app = Celery(
    "carwash_crm",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.services.reminders"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Europe/Madrid",
    enable_utc=True,
    result_expires=3600,
    task_routes={
        "app.services.reminders.*": {"queue": "reminders"},
    },
    beat_schedule={
        "send-appointment-reminders": {
            "task": "app.services.reminders.send_appointment_reminders",
            "schedule": crontab(hour=18, minute=0),
        },
    },
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=1000,
)
