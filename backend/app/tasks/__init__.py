"""
Background tasks package.

Celery tasks for:
- Backup sync to the shared folder (periodic)
- Local backups
"""
from app.tasks.sync_tasks import create_local_backup, sync_closet

__all__ = [
    "sync_closet",
    "create_local_backup",
]
