"""
Pytest configuration and fixtures for testing.
"""
import os
import tempfile

# Settings are read at import time; point them at throwaway locations first
_scratch = tempfile.mkdtemp(prefix="wardrobe-tests-")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SYNC_DIRECTORY", os.path.join(_scratch, "sync"))
os.environ.setdefault("BACKUP_DIRECTORY", os.path.join(_scratch, "backups"))

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.cv.pixel_source import PixelBuffer
from app.cv.taxonomy import ClothingMaterial, ClothingType
from app.main import app
from app.models.clothing import ClothingItem, ClothingSize, Condition, Occasion, Season
from app.services.closet_service import get_recently_deleted

# Use in-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create a new database session for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client with database session override."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_recently_deleted():
    """Start every test with an empty undo holding area."""
    get_recently_deleted().clear()
    yield
    get_recently_deleted().clear()


def make_frame(width: int, height: int, color=(128, 128, 128)) -> PixelBuffer:
    """Solid-color frame."""
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[:, :] = color
    return PixelBuffer.from_array(pixels)


def encode_png(pixels: np.ndarray) -> bytes:
    """Encode an RGB array as PNG bytes."""
    ok, encoded = cv2.imencode(".png", cv2.cvtColor(pixels, cv2.COLOR_RGB2BGR))
    assert ok
    return encoded.tobytes()


@pytest.fixture
def frame_factory():
    """Factory for solid-color frames: frame_factory(width, height, color)."""
    return make_frame


@pytest.fixture
def png_encoder():
    """Encode an RGB array as PNG bytes."""
    return encode_png


@pytest.fixture
def garment_photo() -> bytes:
    """Square photo of a red garment on a white backdrop (PNG bytes)."""
    pixels = np.full((120, 120, 3), 250, dtype=np.uint8)
    pixels[20:100, 25:95] = (200, 30, 30)
    return encode_png(pixels)


@pytest.fixture
def sample_items(db_session):
    """A small closet."""
    items = [
        ClothingItem(
            name="Blue Denim Jeans",
            type=ClothingType.JEANS,
            material=ClothingMaterial.DENIM,
            color="Blue",
            brand="Levi's",
            size=ClothingSize.M,
            purchase_price=89.99,
            store="Macy's",
            season=Season.ALL_SEASON,
            occasion=Occasion.CASUAL,
            condition=Condition.GOOD,
            tags=["casual", "everyday"],
        ),
        ClothingItem(
            name="White Cotton T-Shirt",
            type=ClothingType.T_SHIRT,
            material=ClothingMaterial.COTTON,
            color="White",
            season=Season.SUMMER,
            condition=Condition.EXCELLENT,
            tags=["basic", "summer"],
        ),
        ClothingItem(
            name="Red Silk Blouse",
            type=ClothingType.BLOUSE,
            material=ClothingMaterial.SILK,
            color="Red",
            tags=[],
        ),
    ]
    for item in items:
        db_session.add(item)
        db_session.commit()
    for item in items:
        db_session.refresh(item)
    return items
