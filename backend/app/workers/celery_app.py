"""
Celery Application — Background import processing for the passport service.
Runs IFC model parsing off the API process when IMPORT_WORKER=celery.

Beat schedule:
  fail_stale_import_jobs — every 10 minutes — fails jobs orphaned in processing
"""
from celery import Celery
from celery.schedules import crontab

from app import config

celery_app = Celery(
    "passport",
    broker=config.CELERY_BROKER_URL,
    backend=config.CELERY_RESULT_BACKEND,
    include=["app.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # The runner's own timeout fires first and fails the job cleanly
    task_soft_time_limit=int(config.IFC_PROCESSING_TIMEOUT_SECONDS) + 60,
    task_time_limit=int(config.IFC_PROCESSING_TIMEOUT_SECONDS) + 120,
    result_expires=3600,
    beat_schedule={
        "fail-stale-import-jobs": {
            "task": "tasks.fail_stale_import_jobs",
            "schedule": crontab(minute="*/10"),
            "options": {"expires": 600},
        },
    },
)
