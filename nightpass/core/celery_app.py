"""
Celery application: broker and result backend from settings.
Tasks live in nightpass.workers.tasks.
"""
from celery import Celery
from celery.schedules import crontab

from nightpass.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "nightpass",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "nightpass.workers.tasks.cleanup",
        "nightpass.referral.tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_time_limit=600,
    result_expires=86400,
    beat_schedule={
        "reap-expired-entries": {
            "task": "nightpass.workers.tasks.cleanup.reap_expired_entries",
            "schedule": crontab(minute=f"*/{settings.reaper_interval_minutes}"),
        },
        "resume-pending-redemptions": {
            "task": "nightpass.referral.tasks.resume_pending_redemptions",
            "schedule": crontab(minute="*/5"),
        },
    },
)
