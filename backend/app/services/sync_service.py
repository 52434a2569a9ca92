"""
Backup and sync service.

Handles:
- Sync: write the JSON backup into a shared folder (atomically) and pull it
  back from there
- Local backups: timestamped JSON files in the backup folder, restore
- Sync status (persisted next to the shared backup so API and workers agree)
"""
import json
import logging
import os
import tempfile
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.services.export_service import ExportService

logger = logging.getLogger(__name__)

SYNC_FILENAME = "ClothingClosetBackup.json"
SYNC_STATUS_FILENAME = "ClothingClosetSync.json"
LOCAL_BACKUP_PREFIX = "ClothingClosetBackup_"


class SyncState:
    """Sync status values."""
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


def atomic_write(path: Path, text: str) -> None:
    """Write text to path via a temporary file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except Exception:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class SyncService:
    """Service for shared-folder sync and local backups."""

    def __init__(
        self,
        db: Session,
        sync_dir: Optional[str] = None,
        backup_dir: Optional[str] = None,
        enabled: Optional[bool] = None,
    ):
        """
        Initialize sync service.

        Args:
            db: Database session
            sync_dir: Shared folder (defaults to settings.SYNC_DIRECTORY)
            backup_dir: Local backup folder (defaults to settings.BACKUP_DIRECTORY)
            enabled: Whether sync is allowed (defaults to settings.SYNC_ENABLED)
        """
        self.db = db
        self.exporter = ExportService(db)
        self.sync_dir = Path(sync_dir or settings.SYNC_DIRECTORY)
        self.backup_dir = Path(backup_dir or settings.BACKUP_DIRECTORY)
        self.enabled = settings.SYNC_ENABLED if enabled is None else enabled

    @property
    def sync_path(self) -> Path:
        return self.sync_dir / SYNC_FILENAME

    @property
    def status_path(self) -> Path:
        return self.sync_dir / SYNC_STATUS_FILENAME

    # ========================================================================
    # Status
    # ========================================================================

    def get_status(self) -> Dict:
        """
        Current sync status.

        Returns:
            {"state": "success", "message": None, "enabled": True,
             "last_sync_date": datetime, "item_count": 5}
        """
        status = {
            "state": SyncState.IDLE,
            "message": None,
            "enabled": self.enabled,
            "last_sync_date": None,
            "item_count": None,
        }

        try:
            stored = json.loads(self.status_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return status
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable sync status file {self.status_path}: {e}")
            return status

        status["state"] = stored.get("state", SyncState.IDLE)
        status["message"] = stored.get("message")
        status["item_count"] = stored.get("itemCount")
        if stored.get("lastSyncDate"):
            status["last_sync_date"] = datetime.fromisoformat(stored["lastSyncDate"])
        return status

    def _record_status(self, state: str, message: Optional[str] = None, item_count: Optional[int] = None) -> None:
        previous = self.get_status()
        record = {
            "state": state,
            "message": message,
            "itemCount": item_count if item_count is not None else previous["item_count"],
            "lastSyncDate": previous["last_sync_date"].isoformat() if previous["last_sync_date"] else None,
        }
        if state == SyncState.SUCCESS:
            record["lastSyncDate"] = datetime.utcnow().isoformat()

        try:
            atomic_write(self.status_path, json.dumps(record))
        except OSError as e:
            logger.error(f"Failed to record sync status: {e}")

    # ========================================================================
    # Sync
    # ========================================================================

    def sync_to_folder(self) -> Dict:
        """
        Write the full backup into the shared folder.

        Returns:
            Sync status after the write

        Raises:
            ValueError: If sync is disabled
            OSError: If the shared folder cannot be written

        Any failure after the status is set to syncing is recorded as an
        error before it propagates.
        """
        if not self.enabled:
            raise ValueError("Sync is not enabled")

        self._record_status(SyncState.SYNCING)
        try:
            backup = self.exporter.build_backup(include_images=True)
            atomic_write(self.sync_path, backup.model_dump_json(by_alias=True, indent=2))
        except Exception as e:
            logger.error(f"❌ Sync failed: {e}")
            self._record_status(SyncState.ERROR, f"Sync failed: {e}")
            raise

        self._record_status(SyncState.SUCCESS, item_count=backup.item_count)
        logger.info(f"✅ Synced {backup.item_count} items to {self.sync_path}")
        return self.get_status()

    def pull_from_folder(self, mode: str = "replace") -> Dict:
        """
        Import the backup found in the shared folder.

        Raises:
            ValueError: If sync is disabled, no shared backup exists or it is invalid
        """
        if not self.enabled:
            raise ValueError("Sync is not enabled")

        try:
            payload = self.sync_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ValueError(f"No shared backup found at {self.sync_path}")

        try:
            summary = self.exporter.import_json(payload, mode=mode)
        except ValueError as e:
            self._record_status(SyncState.ERROR, f"Import failed: {e}")
            raise

        self._record_status(SyncState.SUCCESS, item_count=summary["total_items"])
        return summary

    # ========================================================================
    # Local backups
    # ========================================================================

    def create_local_backup(self) -> Dict:
        """
        Write a timestamped backup into the backup folder.

        Returns:
            {"path": str, "item_count": int, "created_at": datetime}
        """
        backup = self.exporter.build_backup(include_images=True)
        path = self.backup_dir / f"{LOCAL_BACKUP_PREFIX}{time.time():.3f}.json"

        try:
            atomic_write(path, backup.model_dump_json(by_alias=True, indent=2))
        except OSError as e:
            logger.error(f"❌ Local backup failed: {e}")
            raise

        logger.info(f"Created local backup {path} ({backup.item_count} items)")
        return {"path": str(path), "item_count": backup.item_count, "created_at": datetime.utcnow()}

    def list_local_backups(self) -> List[Dict]:
        """
        List local backups, newest first.

        Returns:
            [{"path": str, "item_count": int, "created_at": datetime}, ...]
        """
        if not self.backup_dir.is_dir():
            return []

        backups = []
        for path in self.backup_dir.glob(f"{LOCAL_BACKUP_PREFIX}*.json"):
            try:
                item_count = json.loads(path.read_text(encoding="utf-8")).get("itemCount", 0)
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable backup {path}: {e}")
                continue
            backups.append({
                "path": str(path),
                "item_count": item_count,
                "created_at": datetime.utcfromtimestamp(path.stat().st_mtime),
            })

        backups.sort(key=lambda backup: backup["created_at"], reverse=True)
        return backups

    def restore_local_backup(self, filename: str, mode: str = "replace") -> Dict:
        """
        Restore a local backup by file name.

        Raises:
            ValueError: If the name is not a backup file name, or the backup is invalid
            FileNotFoundError: If no such backup exists
        """
        if Path(filename).name != filename or not filename.startswith(LOCAL_BACKUP_PREFIX):
            raise ValueError(f"Invalid backup file name {filename!r}")

        payload = (self.backup_dir / filename).read_text(encoding="utf-8")

        summary = self.exporter.import_json(payload, mode=mode)
        logger.info(f"Restored backup {filename} ({mode})")
        return summary
