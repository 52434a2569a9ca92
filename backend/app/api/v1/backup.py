"""
Backup, export and sync API endpoints.

Handles:
- GET /backup/export/csv, /backup/export/json - Download the closet
- POST /backup/import/json, /backup/import/csv - Load a file into the closet
- POST /backup/sync - Write the backup to the shared folder (inline or queued)
- POST /backup/sync/pull - Import the backup from the shared folder
- GET /backup/status - Sync status
- POST/GET /backup/local - Create (inline or queued)/list local backups
- POST /backup/local/{filename}/restore - Restore a local backup
"""
import logging
from datetime import datetime
from typing import List, Union

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.clothing import BackupFile, ImportSummary, QueuedTask, SyncStatus
from app.services.export_service import ExportService
from app.services.sync_service import SyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/backup", tags=["backup"])

IMPORT_MODE_PATTERN = "^(replace|merge)$"


def _read_text(file: UploadFile) -> str:
    try:
        return file.file.read().decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File must be UTF-8 text",
        )


def _attachment(filename: str) -> dict:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


# ============================================================================
# Export / Import
# ============================================================================

@router.get("/export/csv")
def export_csv(db: Session = Depends(get_db)):
    """Download the closet as CSV."""
    stamp = datetime.utcnow().strftime("%Y%m%d")
    return Response(
        content=ExportService(db).export_csv(),
        media_type="text/csv",
        headers=_attachment(f"closet_{stamp}.csv"),
    )


@router.get("/export/json")
def export_json(
    include_images: bool = Query(True, description="Embed photos as base64"),
    db: Session = Depends(get_db),
):
    """Download the closet as a JSON backup."""
    stamp = datetime.utcnow().strftime("%Y%m%d")
    return Response(
        content=ExportService(db).export_json(include_images=include_images),
        media_type="application/json",
        headers=_attachment(f"closet_backup_{stamp}.json"),
    )


@router.post("/import/json", response_model=ImportSummary)
def import_json(
    file: UploadFile = File(..., description="JSON backup"),
    mode: str = Query("replace", pattern=IMPORT_MODE_PATTERN, description="replace or merge"),
    db: Session = Depends(get_db),
):
    """Import a JSON backup, replacing or merging with the closet."""
    try:
        return ExportService(db).import_json(_read_text(file), mode=mode)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.post("/import/csv", response_model=ImportSummary)
def import_csv(
    file: UploadFile = File(..., description="CSV export"),
    db: Session = Depends(get_db),
):
    """Append items from a CSV file. Rows with unknown type/material are skipped."""
    try:
        return ExportService(db).import_csv(_read_text(file))
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


# ============================================================================
# Sync
# ============================================================================

@router.get("/status", response_model=SyncStatus)
def get_sync_status(db: Session = Depends(get_db)):
    """Current sync status."""
    return SyncService(db).get_status()


@router.post("/sync", response_model=SyncStatus)
def sync_now(
    response: Response,
    background: bool = Query(False, description="Queue the sync on the worker instead of running it inline"),
    db: Session = Depends(get_db),
):
    """Write the backup to the shared sync folder."""
    service = SyncService(db)
    if not service.enabled:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Sync is not enabled",
        )

    if background:
        from app.tasks.sync_tasks import sync_closet

        task = sync_closet.apply_async(queue="sync")
        logger.info(f"Queued closet sync: task_id={task.id}")
        response.status_code = status.HTTP_202_ACCEPTED
        return {**service.get_status(), "task_id": task.id}

    try:
        return service.sync_to_folder()
    except OSError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Sync failed: {e}",
        )


@router.post("/sync/pull", response_model=ImportSummary)
def pull_from_sync(
    mode: str = Query("replace", pattern=IMPORT_MODE_PATTERN, description="replace or merge"),
    db: Session = Depends(get_db),
):
    """Import the backup found in the shared sync folder."""
    service = SyncService(db)
    if not service.enabled:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Sync is not enabled",
        )

    try:
        return service.pull_from_folder(mode=mode)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


# ============================================================================
# Local backups
# ============================================================================

@router.post("/local", response_model=Union[BackupFile, QueuedTask], status_code=status.HTTP_201_CREATED)
def create_local_backup(
    response: Response,
    background: bool = Query(False, description="Queue the backup on the worker instead of writing it inline"),
    db: Session = Depends(get_db),
):
    """Write a timestamped backup to the local backup folder."""
    if background:
        from app.tasks.sync_tasks import create_local_backup as create_local_backup_task

        task = create_local_backup_task.apply_async(queue="sync")
        logger.info(f"Queued local backup: task_id={task.id}")
        response.status_code = status.HTTP_202_ACCEPTED
        return {"task_id": task.id}

    try:
        return SyncService(db).create_local_backup()
    except OSError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Local backup failed: {e}",
        )


@router.get("/local", response_model=List[BackupFile])
def list_local_backups(db: Session = Depends(get_db)):
    """List local backups, newest first."""
    return SyncService(db).list_local_backups()


@router.post("/local/{filename}/restore", response_model=ImportSummary)
def restore_local_backup(
    filename: str,
    mode: str = Query("replace", pattern=IMPORT_MODE_PATTERN, description="replace or merge"),
    db: Session = Depends(get_db),
):
    """Restore a local backup."""
    try:
        return SyncService(db).restore_local_backup(filename, mode=mode)
    except FileNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Backup {filename} not found",
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
