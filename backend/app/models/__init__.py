"""
SQLAlchemy ORM models.
"""
from app.models.clothing import (
    ClothingItem,
    ClothingSize,
    Condition,
    Occasion,
    Season,
    UNTITLED_ITEM_NAME,
)

__all__ = [
    "ClothingItem",
    "ClothingSize",
    "Condition",
    "Occasion",
    "Season",
    "UNTITLED_ITEM_NAME",
]
