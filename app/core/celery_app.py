"""
Celery application: broker and result backend from settings.
Tasks are in app.workers.tasks (monthly credit reset).
"""
from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from app.core.config import settings
from app.core.logging import configure_logging

celery_app = Celery(
    "app",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "app.workers.tasks.reset_credits",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=3600,
    result_expires=86400,
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "reset-monthly-credits": {
            "task": "app.workers.tasks.reset_credits.reset_monthly_credits",
            "schedule": crontab(minute=0, hour=0, day_of_month=1),
        },
    },
)


@setup_logging.connect
def _configure_worker_logging(**kwargs) -> None:
    configure_logging()
