"""
Closet item API endpoints.

Handles CRUD operations for clothing items (with undo for deletions), filters,
search, statistics and front/back photos.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.cv.taxonomy import ClothingMaterial, ClothingType
from app.schemas.clothing import (
    BatchDeleteRequest,
    BatchDeleteResponse,
    ClosetStatistics,
    ClothingItem as ClothingItemSchema,
    ClothingItemCreate,
    ClothingItemUpdate,
)
from app.services.closet_service import IMAGE_SIDES, ClosetService

router = APIRouter(prefix="/items", tags=["items"])


def read_upload(file: UploadFile) -> bytes:
    """Read an uploaded image, enforcing the size limit."""
    data = file.file.read()
    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty",
        )
    if len(data) > settings.MAX_IMAGE_SIZE_MB * 1024 * 1024:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image exceeds {settings.MAX_IMAGE_SIZE_MB} MB limit",
        )
    return data


def _check_side(side: str) -> None:
    if side not in IMAGE_SIDES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid image side. Must be 'front' or 'back'",
        )


@router.get("/", response_model=List[ClothingItemSchema])
def list_items(
    type: Optional[ClothingType] = Query(None, description="Filter by garment type"),
    material: Optional[ClothingMaterial] = Query(None, description="Filter by material"),
    color: Optional[str] = Query(None, description="Filter by color (case-insensitive)"),
    q: Optional[str] = Query(None, description="Search name, type, material and color"),
    db: Session = Depends(get_db),
):
    """
    List closet items, oldest first.

    Filters combine; `q` is applied on top of the filters.
    """
    service = ClosetService(db)
    items = service.list_items(type=type, material=material, color=color)

    if q:
        matches = {item.id for item in service.search_items(q)}
        items = [item for item in items if item.id in matches]

    return items


@router.post("/", response_model=ClothingItemSchema, status_code=status.HTTP_201_CREATED)
def create_item(item_data: ClothingItemCreate, db: Session = Depends(get_db)):
    """Create a closet item. A blank name becomes "Untitled Item"."""
    return ClosetService(db).create_item(item_data)


@router.get("/stats", response_model=ClosetStatistics)
def get_statistics(db: Session = Depends(get_db)):
    """Item counts by type, material and color."""
    return ClosetService(db).statistics()


@router.post("/batch-delete", response_model=BatchDeleteResponse)
def batch_delete(request: BatchDeleteRequest, db: Session = Depends(get_db)):
    """Delete several items at once. Unknown ids are ignored."""
    return {"deleted": ClosetService(db).delete_items(request.ids)}


@router.post("/undo-delete", response_model=List[ClothingItemSchema])
def undo_delete(db: Session = Depends(get_db)):
    """
    Restore the items removed by the last delete.

    Available for UNDO_DELETE_WINDOW_SECONDS after the deletion; returns 404
    when there is nothing left to undo.
    """
    try:
        return ClosetService(db).undo_delete()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/", response_model=BatchDeleteResponse)
def clear_closet(
    confirm: bool = Query(False, description="Must be true to delete every item"),
    db: Session = Depends(get_db),
):
    """Delete every item in the closet."""
    if not confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Pass confirm=true to delete every item",
        )
    return {"deleted": ClosetService(db).clear_all()}


@router.get("/{item_id}", response_model=ClothingItemSchema)
def get_item(item_id: UUID, db: Session = Depends(get_db)):
    """Get a closet item by ID."""
    item = ClosetService(db).get_item(item_id)
    if not item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Clothing item not found",
        )
    return item


@router.patch("/{item_id}", response_model=ClothingItemSchema)
def update_item(item_id: UUID, item_data: ClothingItemUpdate, db: Session = Depends(get_db)):
    """Update a closet item. Only provided fields are changed."""
    try:
        return ClosetService(db).update_item(item_id, item_data)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(item_id: UUID, db: Session = Depends(get_db)):
    """Delete a closet item."""
    try:
        ClosetService(db).delete_item(item_id)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{item_id}/images/{side}", response_model=ClothingItemSchema)
def upload_image(
    item_id: UUID,
    side: str,
    file: UploadFile = File(..., description="Front or back photo"),
    db: Session = Depends(get_db),
):
    """Store the front or back photo (re-encoded as JPEG)."""
    _check_side(side)
    data = read_upload(file)

    service = ClosetService(db)
    if not service.get_item(item_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Clothing item not found",
        )

    try:
        return service.set_image(item_id, side, data)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.get("/{item_id}/images/{side}")
def download_image(item_id: UUID, side: str, db: Session = Depends(get_db)):
    """Get the front or back photo as JPEG."""
    _check_side(side)
    try:
        data = ClosetService(db).get_image(item_id, side)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    if data is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Item has no {side} image",
        )
    return Response(content=data, media_type="image/jpeg")


@router.delete("/{item_id}/images/{side}", response_model=ClothingItemSchema)
def delete_image(item_id: UUID, side: str, db: Session = Depends(get_db)):
    """Remove the front or back photo."""
    _check_side(side)
    try:
        return ClosetService(db).set_image(item_id, side, None)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
