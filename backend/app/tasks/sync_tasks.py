"""
Backup sync tasks.

Celery tasks for:
- Periodic sync of the closet backup to the shared folder
- On-demand local backups
"""
import logging
from typing import Any, Dict

from celery import Task
from sqlalchemy.orm import Session

from app.core.celery_app import celery_app
from app.core.config import settings
from app.core.database import SessionLocal
from app.services.sync_service import SyncService

logger = logging.getLogger(__name__)


class DatabaseTask(Task):
    """Base task with database session management."""

    _db: Session = None

    @property
    def db(self) -> Session:
        """Get database session."""
        if self._db is None:
            self._db = SessionLocal()
        return self._db

    def after_return(self, status, retval, task_id, args, kwargs, einfo):
        """Close database session after task completion."""
        if self._db is not None:
            self._db.close()
            self._db = None


@celery_app.task(
    bind=True,
    base=DatabaseTask,
    name="app.tasks.sync_tasks.sync_closet",
    autoretry_for=(OSError,),
    retry_backoff=True,
    max_retries=3,
)
def sync_closet(self) -> Dict[str, Any]:
    """
    Write the closet backup to the shared sync folder.

    Runs every SYNC_INTERVAL_MINUTES (configured in beat_schedule) and on
    demand. Does nothing while sync is disabled.

    Returns:
        Dict with sync status
    """
    if not settings.SYNC_ENABLED:
        logger.info("Sync disabled, skipping scheduled sync")
        return {"status": "skipped", "reason": "sync disabled"}

    status = SyncService(self.db).sync_to_folder()

    return {
        "status": status["state"],
        "item_count": status["item_count"],
        "last_sync_date": status["last_sync_date"].isoformat() if status["last_sync_date"] else None,
    }


@celery_app.task(
    bind=True,
    base=DatabaseTask,
    name="app.tasks.sync_tasks.create_local_backup",
)
def create_local_backup(self) -> Dict[str, Any]:
    """
    Write a timestamped local backup.

    Returns:
        Dict with backup path and item count
    """
    backup = SyncService(self.db).create_local_backup()
    logger.info(f"✅ Local backup written: {backup['path']}")

    return {
        "status": "completed",
        "path": backup["path"],
        "item_count": backup["item_count"],
    }
