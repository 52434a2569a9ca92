"""
Services for the closet, export/import, backup sync and garment classification.
"""
from app.services.closet_service import ClosetService, resolve_conflicts
from app.services.export_service import ExportService
from app.services.sync_service import SyncService
from app.services.classification_service import ClassificationService, get_classification_service

__all__ = [
    "ClosetService",
    "resolve_conflicts",
    "ExportService",
    "SyncService",
    "ClassificationService",
    "get_classification_service",
]
