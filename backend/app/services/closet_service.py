"""
Closet service for the wardrobe catalog.

Handles:
- Item creation (manual or from a classification result)
- Item queries, filters and search
- Partial updates, single/batch deletion with a short undo window
- Front/back photos (JPEG-compressed)
- Statistics and conflict resolution between item sets
"""
import logging
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar
from uuid import UUID

from sqlalchemy import func, inspect
from sqlalchemy.orm import Session

from app.core.config import settings
from app.cv.errors import DecodeError
from app.cv.garment_analyzer import ClassificationResult
from app.cv.pixel_source import compress_image
from app.cv.taxonomy import UNKNOWN_COLOR, ClothingMaterial, ClothingType
from app.models.clothing import UNTITLED_ITEM_NAME, ClothingItem
from app.schemas.clothing import ClothingItemCreate, ClothingItemUpdate

logger = logging.getLogger(__name__)

IMAGE_SIDES = ("front", "back")

T = TypeVar("T")


def normalize_name(name: Optional[str]) -> str:
    """Blank names are stored as "Untitled Item"."""
    name = (name or "").strip()
    return name or UNTITLED_ITEM_NAME


def normalize_color(color: Optional[str]) -> str:
    color = (color or "").strip()
    return color or UNKNOWN_COLOR


def resolve_conflicts(local_items: Iterable[T], remote_items: Iterable[T]) -> List[T]:
    """
    Merge two item sets by id.

    Items present on both sides keep the version with the later date_added
    (the local one on ties). The result is sorted oldest first.

    Args:
        local_items: Items with `id` and `date_added` attributes
        remote_items: Items with `id` and `date_added` attributes

    Returns:
        Merged list
    """
    merged: Dict[UUID, T] = {}

    for item in local_items:
        merged[item.id] = item

    for remote in remote_items:
        local = merged.get(remote.id)
        if local is None or remote.date_added > local.date_added:
            merged[remote.id] = remote

    return sorted(merged.values(), key=lambda item: item.date_added)


def snapshot_item(item: ClothingItem) -> Dict[str, Any]:
    """Column values of an item, detached from the session."""
    snapshot = {attr.key: getattr(item, attr.key) for attr in inspect(ClothingItem).column_attrs}
    snapshot["tags"] = list(snapshot.get("tags") or [])
    return snapshot


class RecentlyDeleted:
    """
    Holding area for the last deletion, kept for a short undo window.

    Each deletion replaces whatever was held before; snapshots expire
    `window` seconds after they were taken.
    """

    def __init__(self, window: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.window = settings.UNDO_DELETE_WINDOW_SECONDS if window is None else window
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshots: List[Dict[str, Any]] = []
        self._held_at = 0.0

    def hold(self, snapshots: List[Dict[str, Any]]) -> None:
        with self._lock:
            self._snapshots = list(snapshots)
            self._held_at = self._clock()

    def take(self) -> List[Dict[str, Any]]:
        """Remove and return the held snapshots; empty once the window has passed."""
        with self._lock:
            snapshots, self._snapshots = self._snapshots, []
            if snapshots and self._clock() - self._held_at > self.window:
                logger.debug(f"Undo window expired for {len(snapshots)} deleted items")
                return []
            return snapshots

    def clear(self) -> None:
        with self._lock:
            self._snapshots = []


_recently_deleted: Optional[RecentlyDeleted] = None


def get_recently_deleted() -> RecentlyDeleted:
    """
    Get the process-wide holding area for deleted items.

    Returns:
        recently_deleted: RecentlyDeleted shared by every ClosetService
    """
    global _recently_deleted

    if _recently_deleted is None:
        _recently_deleted = RecentlyDeleted()

    return _recently_deleted


class ClosetService:
    """Service for managing clothing items."""

    def __init__(
        self,
        db: Session,
        jpeg_quality: Optional[int] = None,
        recently_deleted: Optional[RecentlyDeleted] = None,
    ):
        """Initialize closet service with database session."""
        self.db = db
        self.jpeg_quality = settings.IMAGE_JPEG_QUALITY if jpeg_quality is None else jpeg_quality
        self.recently_deleted = recently_deleted or get_recently_deleted()

    # ========================================================================
    # Creation
    # ========================================================================

    def create_item(
        self,
        data: ClothingItemCreate,
        front_image: Optional[bytes] = None,
        back_image: Optional[bytes] = None,
    ) -> ClothingItem:
        """
        Create a clothing item.

        Args:
            data: Item fields
            front_image: Optional encoded photo (re-encoded as JPEG)
            back_image: Optional encoded photo (re-encoded as JPEG)

        Returns:
            Persisted ClothingItem

        Raises:
            ValueError: If a photo cannot be decoded
        """
        fields = data.model_dump()
        fields["name"] = normalize_name(fields["name"])
        fields["color"] = normalize_color(fields["color"])

        item = ClothingItem(**fields)
        if front_image is not None:
            item.front_image = self._compress(front_image)
        if back_image is not None:
            item.back_image = self._compress(back_image)

        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)

        logger.info(f"Created clothing item: id={item.id}, name={item.name!r}")
        return item

    def create_from_classification(
        self,
        result: ClassificationResult,
        name: Optional[str] = None,
        front_image: Optional[bytes] = None,
        min_confidence: Optional[float] = None,
    ) -> ClothingItem:
        """
        Create an item seeded from a classification result.

        Args:
            result: Classification result
            name: Item name (defaults to the suggested "<color> <material> <type>")
            front_image: Photo that was classified
            min_confidence: Acceptance threshold (defaults to settings)

        Returns:
            Persisted ClothingItem

        Raises:
            ValueError: If the result is not above the confidence threshold
        """
        threshold = settings.ANALYSIS_MIN_CONFIDENCE if min_confidence is None else min_confidence
        if result.confidence <= threshold:
            raise ValueError(
                f"Classification confidence {result.confidence:.2f} is not above {threshold:.2f}"
            )

        data = ClothingItemCreate(
            name=name or result.suggested_name,
            type=result.type,
            material=result.material,
            color=result.color,
        )
        return self.create_item(data, front_image=front_image)

    # ========================================================================
    # Queries
    # ========================================================================

    def get_item(self, item_id: UUID) -> Optional[ClothingItem]:
        """
        Get item by ID.

        Returns:
            ClothingItem or None if not found
        """
        return self.db.query(ClothingItem).filter(ClothingItem.id == item_id).first()

    def list_items(
        self,
        type: Optional[ClothingType] = None,
        material: Optional[ClothingMaterial] = None,
        color: Optional[str] = None,
    ) -> List[ClothingItem]:
        """
        List items, oldest first.

        Args:
            type: Optional filter by garment type
            material: Optional filter by material
            color: Optional filter by color (case-insensitive exact match)
        """
        query = self.db.query(ClothingItem)

        if type:
            query = query.filter(ClothingItem.type == type)
        if material:
            query = query.filter(ClothingItem.material == material)
        if color:
            query = query.filter(func.lower(ClothingItem.color) == color.strip().lower())

        return query.order_by(ClothingItem.date_added).all()

    def search_items(self, query: str) -> List[ClothingItem]:
        """
        Case-insensitive substring search over name, type, material and color.

        An empty query returns every item.
        """
        needle = query.strip().lower()
        items = self.list_items()
        if not needle:
            return items

        return [
            item for item in items
            if needle in item.name.lower()
            or needle in item.type.value.lower()
            or needle in item.material.value.lower()
            or needle in item.color.lower()
        ]

    def statistics(self) -> Dict:
        """
        Item counts overall and grouped by type, material and color.

        Returns:
            {"total_items": 5, "by_type": {"Jeans": 1}, "by_material": {...}, "by_color": {...}}
        """
        by_type = self.db.query(ClothingItem.type, func.count(ClothingItem.id)).group_by(ClothingItem.type).all()
        by_material = (
            self.db.query(ClothingItem.material, func.count(ClothingItem.id))
            .group_by(ClothingItem.material)
            .all()
        )
        by_color = self.db.query(ClothingItem.color, func.count(ClothingItem.id)).group_by(ClothingItem.color).all()

        return {
            "total_items": self.db.query(func.count(ClothingItem.id)).scalar() or 0,
            "by_type": {garment_type.value: count for garment_type, count in by_type},
            "by_material": {material.value: count for material, count in by_material},
            "by_color": {color: count for color, count in by_color},
        }

    # ========================================================================
    # Updates
    # ========================================================================

    def update_item(self, item_id: UUID, data: ClothingItemUpdate) -> ClothingItem:
        """
        Apply a partial update.

        Raises:
            ValueError: If item not found
        """
        item = self._require(item_id)

        changes = data.model_dump(exclude_unset=True)
        if "name" in changes:
            changes["name"] = normalize_name(changes["name"])
        if "color" in changes:
            changes["color"] = normalize_color(changes["color"])
        if "condition" in changes and changes["condition"] is None:
            del changes["condition"]
        if "tags" in changes and changes["tags"] is None:
            changes["tags"] = []

        for field, value in changes.items():
            setattr(item, field, value)
        item.updated_at = datetime.utcnow()

        self.db.commit()
        self.db.refresh(item)

        logger.info(f"Updated clothing item {item.id}: {sorted(changes)}")
        return item

    def set_image(self, item_id: UUID, side: str, data: Optional[bytes]) -> ClothingItem:
        """
        Replace (or clear, with data=None) the front or back photo.

        Raises:
            ValueError: If item not found, side is invalid or the photo is not an image
        """
        if side not in IMAGE_SIDES:
            raise ValueError(f"Invalid image side {side!r}, expected one of {IMAGE_SIDES}")

        item = self._require(item_id)
        setattr(item, f"{side}_image", self._compress(data) if data is not None else None)
        item.updated_at = datetime.utcnow()

        self.db.commit()
        self.db.refresh(item)
        return item

    def get_image(self, item_id: UUID, side: str) -> Optional[bytes]:
        """
        Get the stored JPEG for a side.

        Raises:
            ValueError: If item not found or side is invalid
        """
        if side not in IMAGE_SIDES:
            raise ValueError(f"Invalid image side {side!r}, expected one of {IMAGE_SIDES}")
        return getattr(self._require(item_id), f"{side}_image")

    # ========================================================================
    # Deletion
    # ========================================================================

    def delete_item(self, item_id: UUID) -> None:
        """
        Delete an item. It can be restored with undo_delete for a short while.

        Raises:
            ValueError: If item not found
        """
        item = self._require(item_id)
        snapshot = snapshot_item(item)
        self.db.delete(item)
        self.db.commit()

        self.recently_deleted.hold([snapshot])
        logger.info(f"Deleted clothing item {item_id}")

    def delete_items(self, item_ids: List[UUID]) -> int:
        """
        Delete several items. Unknown ids are ignored.

        The deleted items can be restored with undo_delete until the undo
        window passes or another deletion replaces them.

        Returns:
            Number of items deleted
        """
        if not item_ids:
            return 0

        try:
            items = self.db.query(ClothingItem).filter(ClothingItem.id.in_(list(item_ids))).all()
            snapshots = [snapshot_item(item) for item in items]
            for item in items:
                self.db.delete(item)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Batch delete failed: {e}")
            raise

        if snapshots:
            self.recently_deleted.hold(snapshots)
        logger.info(f"Deleted {len(snapshots)} clothing items")
        return len(snapshots)

    def undo_delete(self) -> List[ClothingItem]:
        """
        Restore the items removed by the last delete_item / delete_items call.

        Restored items keep their ids and date_added, so they return to their
        original place in the closet order. Items whose id is back in the
        closet already (e.g. re-imported) are skipped.

        Returns:
            Restored items, oldest first

        Raises:
            ValueError: If there is nothing to undo (or the window has passed)
        """
        snapshots = self.recently_deleted.take()
        if not snapshots:
            raise ValueError("Nothing to undo")

        existing = {
            item_id for (item_id,) in
            self.db.query(ClothingItem.id).filter(ClothingItem.id.in_([s["id"] for s in snapshots])).all()
        }

        restored = [ClothingItem(**snapshot) for snapshot in snapshots if snapshot["id"] not in existing]
        try:
            self.db.add_all(restored)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            self.recently_deleted.hold(snapshots)
            logger.error(f"Undo delete failed: {e}")
            raise

        for item in restored:
            self.db.refresh(item)

        logger.info(f"Restored {len(restored)} deleted clothing items")
        return sorted(restored, key=lambda item: item.date_added)

    def clear_all(self) -> int:
        """
        Delete every item.

        Returns:
            Number of items deleted
        """
        try:
            deleted = self.db.query(ClothingItem).delete(synchronize_session=False)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Clearing closet failed: {e}")
            raise

        logger.info(f"Cleared closet ({deleted} items)")
        return deleted

    # ========================================================================
    # Helpers
    # ========================================================================

    def _require(self, item_id: UUID) -> ClothingItem:
        item = self.get_item(item_id)
        if not item:
            raise ValueError(f"Clothing item {item_id} not found")
        return item

    def _compress(self, data: bytes) -> bytes:
        try:
            return compress_image(data, quality=self.jpeg_quality)
        except DecodeError as e:
            raise ValueError(str(e)) from e
