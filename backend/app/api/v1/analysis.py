"""
Garment Analysis API endpoints.

Handles photo classification:
- POST /analysis/classify - Infer type, material and color from a photo
- POST /analysis/cancel - Cancel the caller's in-flight classification
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Header, HTTPException, Query, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.v1.items import read_upload
from app.core.database import get_db
from app.cv.errors import DecodeError
from app.cv.garment_analyzer import ClassificationState
from app.schemas.clothing import ClassificationResponse, ClothingItem as ClothingItemSchema
from app.services.classification_service import ClassificationService, get_classification_service
from app.services.closet_service import ClosetService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["garment-analysis"])

# Outcomes that never carry a usable result
ERROR_STATUS = {
    ClassificationState.TIMED_OUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ClassificationState.CANCELLED: status.HTTP_409_CONFLICT,
}


class CancelResponse(BaseModel):
    """Response for a cancellation request."""
    cancelled: bool


@router.post(
    "/classify",
    response_model=ClassificationResponse,
    summary="Classify a garment photo",
    description="""
    Estimate garment type, material and dominant color from a photo.

    - state "succeeded": confidence is above the acceptance threshold
    - state "failed": the photo could not be used; `message` explains why and
      the client should ask for a clearer photo
    - 400: the upload is not a readable image
    - 504: analysis did not finish within the time budget
    - 409: a newer request from the same client superseded this one

    With `save=true`, a successful result is stored as a new closet item
    (photo included) and returned in `item`.
    """,
)
def classify_photo(
    file: UploadFile = File(..., description="Garment photo (JPEG, PNG, ...)"),
    save: bool = Query(False, description="Store a successful result as a closet item"),
    name: Optional[str] = Query(None, description="Item name when saving (defaults to suggested name)"),
    x_client_id: Optional[str] = Header(None, description="Client session id"),
    db: Session = Depends(get_db),
    classifier: ClassificationService = Depends(get_classification_service),
):
    """Classify an uploaded garment photo."""
    data = read_upload(file)
    outcome = classifier.classify(data, client_id=x_client_id)

    if outcome.state in ERROR_STATUS:
        raise HTTPException(
            status_code=ERROR_STATUS[outcome.state],
            detail=outcome.message,
        )

    if isinstance(outcome.error, DecodeError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=outcome.message,
        )

    response = ClassificationResponse(
        state=outcome.state.value,
        message=outcome.message,
        result=(
            {**outcome.result.to_dict(), "suggested_name": outcome.result.suggested_name}
            if outcome.result else None
        ),
    )

    if save and outcome.succeeded:
        try:
            item = ClosetService(db).create_from_classification(
                outcome.result,
                name=name,
                front_image=data,
                min_confidence=classifier.min_confidence,
            )
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e),
            )
        response.item = ClothingItemSchema.model_validate(item)
        logger.info(f"Saved classified item {item.id} ({item.name})")

    return response


@router.post("/cancel", response_model=CancelResponse)
def cancel_classification(
    x_client_id: Optional[str] = Header(None, description="Client session id"),
    classifier: ClassificationService = Depends(get_classification_service),
):
    """Cancel the caller's in-flight classification, if any."""
    return {"cancelled": classifier.cancel(x_client_id)}
