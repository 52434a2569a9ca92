"""
Pydantic schemas for request/response validation.
"""
from app.schemas.clothing import (
    BackupData,
    BackupFile,
    BackupItem,
    BatchDeleteRequest,
    BatchDeleteResponse,
    ClassificationResponse,
    ClassificationResult,
    ClosetStatistics,
    ClothingItem,
    ClothingItemCreate,
    ClothingItemUpdate,
    ImportSummary,
    QueuedTask,
    SyncStatus,
)

__all__ = [
    # Clothing item schemas
    "ClothingItem",
    "ClothingItemCreate",
    "ClothingItemUpdate",
    "ClosetStatistics",
    "BatchDeleteRequest",
    "BatchDeleteResponse",
    # Classification schemas
    "ClassificationResult",
    "ClassificationResponse",
    # Backup schemas
    "BackupData",
    "BackupItem",
    "BackupFile",
    "ImportSummary",
    "QueuedTask",
    "SyncStatus",
]
