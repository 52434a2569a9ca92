"""
Pydantic schemas for clothing items, classification and backups.
"""
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.cv.taxonomy import ClothingMaterial, ClothingType
from app.models.clothing import ClothingSize, Condition, Occasion, Season


# Clothing item schemas
class ClothingItemBase(BaseModel):
    """Base clothing item schema."""
    name: str = Field(default="", max_length=255)
    type: ClothingType = ClothingType.UNKNOWN
    material: ClothingMaterial = ClothingMaterial.UNKNOWN
    color: str = Field(default="Unknown", max_length=100)
    brand: Optional[str] = Field(None, max_length=255)
    size: Optional[ClothingSize] = None
    purchase_price: Optional[float] = Field(None, ge=0, description="Purchase price")
    purchase_date: Optional[datetime] = None
    store: Optional[str] = Field(None, max_length=255)
    season: Optional[Season] = None
    occasion: Optional[Occasion] = None
    notes: Optional[str] = None
    condition: Condition = Condition.GOOD
    tags: List[str] = Field(default_factory=list)


class ClothingItemCreate(ClothingItemBase):
    """Schema for creating a clothing item. A blank name becomes "Untitled Item"."""
    pass


class ClothingItemUpdate(BaseModel):
    """Schema for updating a clothing item. Only provided fields change."""
    name: Optional[str] = Field(None, max_length=255)
    type: Optional[ClothingType] = None
    material: Optional[ClothingMaterial] = None
    color: Optional[str] = Field(None, max_length=100)
    brand: Optional[str] = Field(None, max_length=255)
    size: Optional[ClothingSize] = None
    purchase_price: Optional[float] = Field(None, ge=0)
    purchase_date: Optional[datetime] = None
    store: Optional[str] = Field(None, max_length=255)
    season: Optional[Season] = None
    occasion: Optional[Occasion] = None
    notes: Optional[str] = None
    condition: Optional[Condition] = None
    tags: Optional[List[str]] = None


class ClothingItem(ClothingItemBase):
    """Schema for clothing item response."""
    id: UUID
    date_added: datetime
    updated_at: datetime
    has_front_image: bool = False
    has_back_image: bool = False

    model_config = ConfigDict(from_attributes=True)


class ClosetStatistics(BaseModel):
    """Item counts for the closet overview."""
    total_items: int
    by_type: Dict[str, int]
    by_material: Dict[str, int]
    by_color: Dict[str, int]


class BatchDeleteRequest(BaseModel):
    """Schema for deleting several items at once."""
    ids: List[UUID] = Field(..., min_length=1)


class BatchDeleteResponse(BaseModel):
    deleted: int


# Classification schemas
class ClassificationResult(BaseModel):
    """Attributes inferred from a garment photo."""
    type: ClothingType
    material: ClothingMaterial
    color: str
    confidence: float = Field(..., ge=0, le=1)
    suggested_name: str


class ClassificationResponse(BaseModel):
    """Outcome of a classification request."""
    state: str  # succeeded | failed | timed_out | cancelled
    result: Optional[ClassificationResult] = None
    message: Optional[str] = None
    item: Optional[ClothingItem] = None  # Set when the result was saved to the closet


# Backup schemas (camelCase on the wire)
class BackupModel(BaseModel):
    """Base for backup documents: camelCase aliases, snake_case attributes."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BackupItem(BackupModel):
    """One clothing item inside a JSON backup."""
    id: UUID
    name: str
    type: ClothingType
    material: ClothingMaterial
    color: str
    date_added: datetime
    brand: Optional[str] = None
    size: Optional[ClothingSize] = None
    purchase_price: Optional[float] = None
    purchase_date: Optional[datetime] = None
    store: Optional[str] = None
    season: Optional[Season] = None
    occasion: Optional[Occasion] = None
    notes: Optional[str] = None
    condition: Condition = Condition.GOOD
    tags: List[str] = Field(default_factory=list)
    front_image: Optional[str] = None  # Base64 JPEG
    back_image: Optional[str] = None  # Base64 JPEG


class BackupData(BackupModel):
    """Full closet backup document."""
    version: str = "1.0"
    export_date: datetime
    item_count: int
    items: List[BackupItem]


class ImportSummary(BaseModel):
    """Result of a JSON or CSV import."""
    mode: str  # replace | merge | append
    imported: int
    skipped: int = 0
    total_items: int


class BackupFile(BaseModel):
    """A backup written to disk."""
    path: str
    item_count: int
    created_at: datetime


class QueuedTask(BaseModel):
    """A job handed to the background worker."""
    task_id: str
    status: str = "queued"


class SyncStatus(BaseModel):
    """Backup/sync state."""
    state: str  # idle | syncing | success | error
    message: Optional[str] = None
    enabled: bool
    last_sync_date: Optional[datetime] = None
    item_count: Optional[int] = None
    task_id: Optional[str] = None
