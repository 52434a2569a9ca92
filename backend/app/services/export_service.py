"""
Export/import service for closet data.

Formats:
- CSV: spreadsheet-friendly, every field quoted, tags joined with ";"
- JSON backup: {version, exportDate, itemCount, items} with camelCase keys,
  ISO-8601 dates and optional base64 photos

Imports:
- JSON replace: the backup becomes the whole closet
- JSON merge: union by id, the later date_added wins
- CSV append: rows whose type or material is not a known value are skipped
"""
import base64
import binascii
import csv
import io
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.cv.taxonomy import ClothingMaterial, ClothingType
from app.models.clothing import ClothingItem, ClothingSize, Condition, Occasion, Season
from app.schemas.clothing import BackupData, BackupItem
from app.services.closet_service import ClosetService, normalize_color, normalize_name, resolve_conflicts

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"

CSV_HEADER = [
    "Name", "Type", "Material", "Color", "Brand", "Size", "Price",
    "Store", "Season", "Occasion", "Condition", "Tags", "Date Added",
]

TAG_SEPARATOR = ";"

IMPORT_MODES = ("replace", "merge")

# Fields copied between BackupItem and ClothingItem
ITEM_FIELDS = (
    "name", "type", "material", "color", "brand", "size", "purchase_price",
    "purchase_date", "store", "season", "occasion", "notes", "condition", "tags",
)


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Mark a stored (naive UTC) timestamp as UTC for serialization."""
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert a parsed timestamp to the naive UTC form the database stores."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _enum_or_none(enum_cls, value: str):
    value = (value or "").strip()
    if not value:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


class ExportService:
    """Service for exporting and importing the closet."""

    def __init__(self, db: Session):
        """Initialize export service with database session."""
        self.db = db
        self.closet = ClosetService(db)

    # ========================================================================
    # Export
    # ========================================================================

    def export_csv(self) -> str:
        """
        Export all items as CSV.

        Returns:
            CSV text with header row
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADER)

        for item in self.closet.list_items():
            writer.writerow([
                item.name,
                item.type.value,
                item.material.value,
                item.color,
                item.brand or "",
                item.size.value if item.size else "",
                "" if item.purchase_price is None else str(item.purchase_price),
                item.store or "",
                item.season.value if item.season else "",
                item.occasion.value if item.occasion else "",
                (item.condition or Condition.GOOD).value,
                TAG_SEPARATOR.join(item.tags or []),
                item.date_added.isoformat(),
            ])

        return buffer.getvalue()

    def build_backup(self, include_images: bool = True) -> BackupData:
        """
        Build the JSON backup document.

        Args:
            include_images: Embed photos as base64

        Returns:
            BackupData
        """
        items = [self._to_backup_item(item, include_images) for item in self.closet.list_items()]
        return BackupData(
            version=BACKUP_VERSION,
            export_date=datetime.now(timezone.utc),
            item_count=len(items),
            items=items,
        )

    def export_json(self, include_images: bool = True) -> str:
        """Export all items as a JSON backup string."""
        backup = self.build_backup(include_images)
        logger.info(f"Exported JSON backup with {backup.item_count} items")
        return backup.model_dump_json(by_alias=True, indent=2)

    # ========================================================================
    # Import
    # ========================================================================

    def parse_backup(self, payload: Union[str, bytes]) -> BackupData:
        """
        Parse a JSON backup.

        Raises:
            ValueError: If the payload is not a valid backup document
        """
        try:
            return BackupData.model_validate_json(payload)
        except ValidationError as e:
            raise ValueError(f"Invalid backup file: {e.error_count()} validation error(s)") from e

    def import_json(self, payload: Union[str, bytes], mode: str = "replace") -> Dict:
        """
        Import a JSON backup.

        Args:
            payload: Backup document
            mode: "replace" (backup becomes the closet) or "merge" (union by id)

        Returns:
            {"mode": ..., "imported": N, "skipped": 0, "total_items": M}

        Raises:
            ValueError: If mode is unknown or the payload is invalid
        """
        if mode not in IMPORT_MODES:
            raise ValueError(f"Invalid import mode {mode!r}, expected one of {IMPORT_MODES}")

        backup = self.parse_backup(payload)
        remote_items = [self._normalized(item) for item in backup.items]

        try:
            if mode == "replace":
                for existing in self.closet.list_items():
                    self.db.delete(existing)
                self.db.flush()
                for remote in remote_items:
                    self.db.add(self._from_backup_item(remote))
                imported = len(remote_items)
            else:
                imported = self._merge(remote_items)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"JSON import failed: {e}")
            raise

        total = len(self.closet.list_items())
        logger.info(f"Imported JSON backup ({mode}): {imported} items applied, {total} in closet")
        return {"mode": mode, "imported": imported, "skipped": 0, "total_items": total}

    def import_csv(self, text: str) -> Dict:
        """
        Append items from CSV text.

        Rows without a known Type and Material are skipped. Missing optional
        columns are left empty; Condition defaults to Good.

        Returns:
            {"mode": "append", "imported": N, "skipped": K, "total_items": M}

        Raises:
            ValueError: If the CSV has no header row
        """
        reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
        if not reader.fieldnames:
            raise ValueError("CSV file has no header row")

        imported = 0
        skipped = 0

        try:
            for row in reader:
                item = self._from_csv_row(row)
                if item is None:
                    skipped += 1
                    continue
                self.db.add(item)
                imported += 1
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"CSV import failed: {e}")
            raise

        total = len(self.closet.list_items())
        logger.info(f"Imported CSV: {imported} items added, {skipped} rows skipped")
        return {"mode": "append", "imported": imported, "skipped": skipped, "total_items": total}

    # ========================================================================
    # Helpers
    # ========================================================================

    def _merge(self, remote_items: List[BackupItem]) -> int:
        local_items = self.closet.list_items()
        local_by_id = {item.id: item for item in local_items}

        applied = 0
        for winner in resolve_conflicts(local_items, remote_items):
            if not isinstance(winner, BackupItem):
                continue
            existing = local_by_id.get(winner.id)
            if existing is None:
                self.db.add(self._from_backup_item(winner))
            else:
                self._apply_backup_item(existing, winner)
            applied += 1
        return applied

    @staticmethod
    def _normalized(item: BackupItem) -> BackupItem:
        return item.model_copy(update={
            "date_added": to_naive_utc(item.date_added),
            "purchase_date": to_naive_utc(item.purchase_date),
        })

    @staticmethod
    def _to_backup_item(item: ClothingItem, include_images: bool) -> BackupItem:
        fields = {field: getattr(item, field) for field in ITEM_FIELDS}
        fields["tags"] = list(item.tags or [])
        fields["purchase_date"] = to_utc(item.purchase_date)
        fields["condition"] = item.condition or Condition.GOOD

        if include_images:
            fields["front_image"] = _b64encode(item.front_image)
            fields["back_image"] = _b64encode(item.back_image)

        return BackupItem(id=item.id, date_added=to_utc(item.date_added), **fields)

    def _from_backup_item(self, backup: BackupItem) -> ClothingItem:
        item = ClothingItem(id=backup.id, date_added=backup.date_added)
        self._apply_backup_item(item, backup)
        return item

    @staticmethod
    def _apply_backup_item(item: ClothingItem, backup: BackupItem) -> None:
        for field in ITEM_FIELDS:
            setattr(item, field, getattr(backup, field))
        item.name = normalize_name(backup.name)
        item.color = normalize_color(backup.color)
        item.tags = list(backup.tags)
        item.date_added = backup.date_added
        item.front_image = _b64decode(backup.front_image)
        item.back_image = _b64decode(backup.back_image)
        item.updated_at = datetime.utcnow()

    @staticmethod
    def _from_csv_row(row: Dict[str, str]) -> Optional[ClothingItem]:
        garment_type = _enum_or_none(ClothingType, row.get("Type"))
        material = _enum_or_none(ClothingMaterial, row.get("Material"))
        if garment_type is None or material is None:
            logger.debug(f"Skipping CSV row with unknown type/material: {row.get('Type')!r}/{row.get('Material')!r}")
            return None

        price = (row.get("Price") or "").strip()
        try:
            purchase_price = float(price) if price else None
        except ValueError:
            purchase_price = None

        added = (row.get("Date Added") or "").strip()
        try:
            date_added = to_naive_utc(datetime.fromisoformat(added)) if added else datetime.utcnow()
        except ValueError:
            date_added = datetime.utcnow()

        tags = [tag.strip() for tag in (row.get("Tags") or "").split(TAG_SEPARATOR) if tag.strip()]

        return ClothingItem(
            name=normalize_name(row.get("Name")),
            type=garment_type,
            material=material,
            color=normalize_color(row.get("Color")),
            brand=(row.get("Brand") or "").strip() or None,
            size=_enum_or_none(ClothingSize, row.get("Size")),
            purchase_price=purchase_price,
            store=(row.get("Store") or "").strip() or None,
            season=_enum_or_none(Season, row.get("Season")),
            occasion=_enum_or_none(Occasion, row.get("Occasion")),
            condition=_enum_or_none(Condition, row.get("Condition")) or Condition.GOOD,
            tags=tags,
            date_added=date_added,
        )


def _b64encode(data: Optional[bytes]) -> Optional[str]:
    return base64.b64encode(data).decode("ascii") if data else None


def _b64decode(data: Optional[str]) -> Optional[bytes]:
    if not data:
        return None
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image data in backup: {e}") from e
