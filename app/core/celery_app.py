from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging
from app.core.config import settings
import sys

# Create Celery app
celery_app = Celery(
    "attendance_tracker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "app.workers.celery_tasks.hr_tasks",
    ]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.TIMEZONE,
    enable_utc=True,
    result_expires=3600,
)

# Windows-specific configuration
if sys.platform == 'win32':
    celery_app.conf.update(
        worker_pool='threads',
        worker_concurrency=4
    )

celery_app.conf.beat_schedule = {
    "report-forgotten-checkouts": {
        "task": "app.workers.celery_tasks.hr_tasks.report_forgotten_checkouts",
        "schedule": crontab(hour=0, minute=30),  # Daily, server local time
    },
}


@setup_logging.connect
def configure_worker_logging(**kwargs):
    from app.core.logging_config import setup_logging as setup_app_logging
    setup_app_logging()
