"""
Celery application configuration.

Handles:
- Celery app initialization
- Task registration
- Result backend configuration
- Queue routing
- Periodic backup sync
"""
import logging
from datetime import timedelta

from celery import Celery
from celery.signals import (
    task_failure,
    task_postrun,
    task_prerun,
    task_retry,
    task_success,
)

from app.core.config import settings

logger = logging.getLogger(__name__)

# Create Celery application
celery_app = Celery(
    "wardrobe",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.tasks.sync_tasks"],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_track_started=True,
    task_time_limit=600,  # 10 minutes hard limit
    task_soft_time_limit=540,  # 9 minutes soft limit
    task_acks_late=True,  # Acknowledge after task completion
    task_reject_on_worker_lost=True,

    # Result backend settings
    result_expires=86400,  # Results expire after 24 hours

    # Worker settings
    worker_prefetch_multiplier=1,

    # Task routing
    task_routes={
        "app.tasks.sync_tasks.*": {"queue": "sync"},
    },

    # Redis connection pool
    broker_connection_retry_on_startup=True,
    broker_connection_max_retries=10,

    # Beat schedule
    beat_schedule={
        "sync-closet-backup": {
            "task": "app.tasks.sync_tasks.sync_closet",
            "schedule": timedelta(minutes=settings.SYNC_INTERVAL_MINUTES),
        },
    },
)


# Signals for task lifecycle events
@task_prerun.connect
def task_prerun_handler(sender=None, task_id=None, task=None, args=None, kwargs=None, **extra):
    """Log when task starts."""
    logger.info(f"Task {task.name} [{task_id}] starting")


@task_postrun.connect
def task_postrun_handler(
    sender=None, task_id=None, task=None, args=None, kwargs=None, retval=None, state=None, **extra
):
    """Log when task completes."""
    logger.info(f"Task {task.name} [{task_id}] completed with state: {state}")


@task_failure.connect
def task_failure_handler(
    sender=None, task_id=None, exception=None, args=None, kwargs=None, traceback=None, einfo=None, **extra
):
    """Log when task fails."""
    logger.error(
        f"Task {sender.name} [{task_id}] failed: {exception}",
        exc_info=einfo,
    )


@task_success.connect
def task_success_handler(sender=None, result=None, **extra):
    """Log when task succeeds."""
    logger.info(f"Task {sender.name} succeeded with result: {result}")


@task_retry.connect
def task_retry_handler(sender=None, task_id=None, reason=None, einfo=None, **extra):
    """Log when task is retried."""
    logger.warning(f"Task {sender.name} [{task_id}] retrying: {reason}")
