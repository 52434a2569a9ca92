"""
Clothing item model for the wardrobe catalog.
"""
import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Enum as SQLEnum, Float, LargeBinary, String, Text, Uuid

from app.core.database import Base
from app.cv.taxonomy import ClothingMaterial, ClothingType

UNTITLED_ITEM_NAME = "Untitled Item"


class ClothingSize(str, Enum):
    """Letter, numeric and shoe sizes."""
    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"
    XXL = "XXL"
    SIZE_0 = "0"
    SIZE_2 = "2"
    SIZE_4 = "4"
    SIZE_6 = "6"
    SIZE_8 = "8"
    SIZE_10 = "10"
    SIZE_12 = "12"
    SIZE_14 = "14"
    SIZE_16 = "16"
    SHOE_5 = "Shoe 5"
    SHOE_6 = "Shoe 6"
    SHOE_7 = "Shoe 7"
    SHOE_8 = "Shoe 8"
    SHOE_9 = "Shoe 9"
    SHOE_10 = "Shoe 10"
    SHOE_11 = "Shoe 11"
    SHOE_12 = "Shoe 12"
    SHOE_13 = "Shoe 13"


class Season(str, Enum):
    """Season an item is worn in."""
    SPRING = "Spring"
    SUMMER = "Summer"
    FALL = "Fall"
    WINTER = "Winter"
    ALL_SEASON = "All Season"


class Occasion(str, Enum):
    """Occasion an item is worn for."""
    CASUAL = "Casual"
    WORK = "Work"
    FORMAL = "Formal"
    SPORT = "Sport"
    PARTY = "Party"


class Condition(str, Enum):
    """Wear condition."""
    NEW = "New"
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"


class ClothingItem(Base):
    """
    A garment in the user's closet.

    Type, material and color are usually seeded from a classification
    result and may be edited afterwards. Identity and date_added never change.
    """
    __tablename__ = "clothing_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Core attributes
    name = Column(String(255), nullable=False, default=UNTITLED_ITEM_NAME)
    type = Column(SQLEnum(ClothingType), nullable=False, default=ClothingType.UNKNOWN, index=True)
    material = Column(SQLEnum(ClothingMaterial), nullable=False, default=ClothingMaterial.UNKNOWN, index=True)
    color = Column(String(100), nullable=False, default="Unknown", index=True)

    # Photos (JPEG)
    front_image = Column(LargeBinary, nullable=True)
    back_image = Column(LargeBinary, nullable=True)

    # Purchase details
    brand = Column(String(255), nullable=True)
    size = Column(SQLEnum(ClothingSize), nullable=True)
    purchase_price = Column(Float, nullable=True)
    purchase_date = Column(DateTime, nullable=True)
    store = Column(String(255), nullable=True)

    # Wear details
    season = Column(SQLEnum(Season), nullable=True)
    occasion = Column(SQLEnum(Occasion), nullable=True)
    condition = Column(SQLEnum(Condition), nullable=False, default=Condition.GOOD)
    notes = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)

    # Timestamps
    date_added = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def has_front_image(self) -> bool:
        return self.front_image is not None

    @property
    def has_back_image(self) -> bool:
        return self.back_image is not None

    def __repr__(self):
        return f"<ClothingItem {self.name} ({self.type})>"
