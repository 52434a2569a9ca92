"""
Unit tests for closet service.

Tests:
- Item creation and name/color normalization
- Creation from classification results
- Filters, search and statistics
- Partial updates, photos and deletion
- Conflict resolution between item sets
"""
import uuid
from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from app.core.config import settings
from app.cv.garment_analyzer import ClassificationResult
from app.cv.taxonomy import ClothingMaterial, ClothingType
from app.models.clothing import ClothingItem, Condition
from app.schemas.clothing import ClothingItemCreate, ClothingItemUpdate
from app.services.closet_service import ClosetService, RecentlyDeleted, resolve_conflicts


@pytest.fixture
def closet(db_session):
    return ClosetService(db_session, jpeg_quality=80)


@pytest.mark.unit
class TestCreateItem:
    """Test item creation."""

    def test_create_item(self, closet):
        item = closet.create_item(ClothingItemCreate(
            name="Navy Blazer",
            type=ClothingType.BLAZER,
            material=ClothingMaterial.WOOL,
            color="Navy",
            tags=["work"],
        ))

        assert item.id is not None
        assert item.name == "Navy Blazer"
        assert item.condition == Condition.GOOD
        assert item.tags == ["work"]
        assert item.date_added is not None
        assert item.has_front_image is False

    def test_blank_name_becomes_untitled(self, closet):
        item = closet.create_item(ClothingItemCreate(name="   "))

        assert item.name == "Untitled Item"

    def test_blank_color_becomes_unknown(self, closet):
        item = closet.create_item(ClothingItemCreate(name="Scarf", color=""))

        assert item.color == "Unknown"

    def test_create_with_photo(self, closet, garment_photo):
        item = closet.create_item(ClothingItemCreate(name="Red Top"), front_image=garment_photo)

        assert item.has_front_image is True
        assert item.front_image[:2] == b"\xff\xd8"

    def test_create_with_invalid_photo(self, closet):
        with pytest.raises(ValueError):
            closet.create_item(ClothingItemCreate(name="Broken"), front_image=b"not an image")

    def test_explicit_zero_quality_kept(self, db_session, garment_photo):
        closet = ClosetService(db_session, jpeg_quality=0)

        with patch("app.services.closet_service.compress_image", return_value=b"\xff\xd8jpeg") as compress:
            closet.create_item(ClothingItemCreate(name="Red Top"), front_image=garment_photo)

        assert closet.jpeg_quality == 0
        compress.assert_called_once_with(garment_photo, quality=0)

    def test_default_quality_from_settings(self, db_session):
        assert ClosetService(db_session).jpeg_quality == settings.IMAGE_JPEG_QUALITY


@pytest.mark.unit
class TestCreateFromClassification:
    """Test seeding items from classification results."""

    def result(self, confidence):
        return ClassificationResult(
            type=ClothingType.JEANS,
            material=ClothingMaterial.DENIM,
            color="Blue",
            confidence=confidence,
        )

    def test_uses_suggested_name(self, closet):
        item = closet.create_from_classification(self.result(0.8), min_confidence=0.1)

        assert item.name == "Blue Denim Jeans"
        assert item.type == ClothingType.JEANS
        assert item.material == ClothingMaterial.DENIM

    def test_explicit_name(self, closet):
        item = closet.create_from_classification(self.result(0.8), name="Weekend Jeans", min_confidence=0.1)

        assert item.name == "Weekend Jeans"

    def test_low_confidence_rejected(self, closet):
        with pytest.raises(ValueError, match="not above"):
            closet.create_from_classification(self.result(0.1), min_confidence=0.1)

        assert closet.list_items() == []


@pytest.mark.unit
class TestQueries:
    """Test listing, filtering and search."""

    def test_list_oldest_first(self, closet, sample_items):
        names = [item.name for item in closet.list_items()]

        assert names == ["Blue Denim Jeans", "White Cotton T-Shirt", "Red Silk Blouse"]

    def test_filter_by_type(self, closet, sample_items):
        items = closet.list_items(type=ClothingType.JEANS)

        assert [item.name for item in items] == ["Blue Denim Jeans"]

    def test_filter_by_material(self, closet, sample_items):
        items = closet.list_items(material=ClothingMaterial.SILK)

        assert [item.name for item in items] == ["Red Silk Blouse"]

    def test_filter_by_color_case_insensitive(self, closet, sample_items):
        items = closet.list_items(color="white")

        assert [item.name for item in items] == ["White Cotton T-Shirt"]

    def test_search_by_material(self, closet, sample_items):
        assert [item.name for item in closet.search_items("denim")] == ["Blue Denim Jeans"]

    def test_search_by_type(self, closet, sample_items):
        assert [item.name for item in closet.search_items("T-SHIRT")] == ["White Cotton T-Shirt"]

    def test_search_by_color(self, closet, sample_items):
        assert [item.name for item in closet.search_items("red")] == ["Red Silk Blouse"]

    def test_empty_search_returns_all(self, closet, sample_items):
        assert len(closet.search_items("  ")) == 3

    def test_get_missing_item(self, closet):
        assert closet.get_item(uuid.uuid4()) is None

    def test_statistics(self, closet, sample_items):
        stats = closet.statistics()

        assert stats["total_items"] == 3
        assert stats["by_type"] == {"Jeans": 1, "T-Shirt": 1, "Blouse": 1}
        assert stats["by_material"] == {"Denim": 1, "Cotton": 1, "Silk": 1}
        assert stats["by_color"] == {"Blue": 1, "White": 1, "Red": 1}

    def test_statistics_empty(self, closet):
        assert closet.statistics() == {"total_items": 0, "by_type": {}, "by_material": {}, "by_color": {}}


@pytest.mark.unit
class TestUpdates:
    """Test partial updates and photos."""

    def test_partial_update(self, closet, sample_items):
        jeans = sample_items[0]
        date_added = jeans.date_added

        updated = closet.update_item(jeans.id, ClothingItemUpdate(color="Indigo", notes="Hemmed"))

        assert updated.color == "Indigo"
        assert updated.notes == "Hemmed"
        assert updated.brand == "Levi's"
        assert updated.date_added == date_added

    def test_update_blank_name(self, closet, sample_items):
        updated = closet.update_item(sample_items[0].id, ClothingItemUpdate(name=""))

        assert updated.name == "Untitled Item"

    def test_update_missing_item(self, closet):
        with pytest.raises(ValueError, match="not found"):
            closet.update_item(uuid.uuid4(), ClothingItemUpdate(name="x"))

    def test_set_and_get_image(self, closet, sample_items, garment_photo):
        item = closet.set_image(sample_items[1].id, "back", garment_photo)

        assert item.has_back_image is True
        assert closet.get_image(item.id, "back")[:2] == b"\xff\xd8"
        assert closet.get_image(item.id, "front") is None

    def test_clear_image(self, closet, sample_items, garment_photo):
        closet.set_image(sample_items[1].id, "front", garment_photo)

        item = closet.set_image(sample_items[1].id, "front", None)

        assert item.has_front_image is False

    def test_invalid_side(self, closet, sample_items, garment_photo):
        with pytest.raises(ValueError, match="Invalid image side"):
            closet.set_image(sample_items[0].id, "left", garment_photo)


@pytest.mark.unit
class TestDeletion:
    """Test single, batch and full deletion."""

    def test_delete_item(self, closet, sample_items):
        closet.delete_item(sample_items[0].id)

        assert closet.get_item(sample_items[0].id) is None
        assert len(closet.list_items()) == 2

    def test_delete_missing_item(self, closet):
        with pytest.raises(ValueError, match="not found"):
            closet.delete_item(uuid.uuid4())

    def test_delete_items_ignores_unknown_ids(self, closet, sample_items):
        deleted = closet.delete_items([sample_items[0].id, sample_items[2].id, uuid.uuid4()])

        assert deleted == 2
        assert [item.name for item in closet.list_items()] == ["White Cotton T-Shirt"]

    def test_delete_items_empty(self, closet):
        assert closet.delete_items([]) == 0

    def test_clear_all(self, closet, sample_items):
        assert closet.clear_all() == 3
        assert closet.list_items() == []


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.mark.unit
class TestUndoDelete:
    """Test restoring recently deleted items."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def undoable_closet(self, db_session, clock):
        return ClosetService(db_session, recently_deleted=RecentlyDeleted(window=5.0, clock=clock))

    def test_batch_delete_restored_in_original_order(self, undoable_closet, sample_items):
        jeans_id, blouse_id = sample_items[0].id, sample_items[2].id
        before = [item.id for item in undoable_closet.list_items()]
        undoable_closet.delete_items([jeans_id, blouse_id])

        restored = undoable_closet.undo_delete()

        assert [item.id for item in restored] == [jeans_id, blouse_id]
        assert [item.id for item in undoable_closet.list_items()] == before

    def test_restored_item_keeps_every_field(self, undoable_closet, sample_items, garment_photo):
        jeans = undoable_closet.set_image(sample_items[0].id, "front", garment_photo)
        jeans_id, photo, added = jeans.id, jeans.front_image, jeans.date_added
        undoable_closet.delete_item(jeans_id)

        undoable_closet.undo_delete()

        restored = undoable_closet.get_item(jeans_id)
        assert restored.brand == "Levi's"
        assert restored.tags == ["casual", "everyday"]
        assert restored.front_image == photo
        assert restored.date_added == added

    def test_undo_only_once(self, undoable_closet, sample_items):
        undoable_closet.delete_item(sample_items[1].id)
        undoable_closet.undo_delete()

        with pytest.raises(ValueError, match="Nothing to undo"):
            undoable_closet.undo_delete()

    def test_window_expires(self, undoable_closet, clock, sample_items):
        undoable_closet.delete_items([sample_items[0].id])
        clock.now += 5.1

        with pytest.raises(ValueError, match="Nothing to undo"):
            undoable_closet.undo_delete()
        assert len(undoable_closet.list_items()) == 2

    def test_latest_deletion_replaces_previous(self, undoable_closet, sample_items):
        jeans_id, shirt_id = sample_items[0].id, sample_items[1].id
        undoable_closet.delete_item(jeans_id)
        undoable_closet.delete_item(shirt_id)

        restored = undoable_closet.undo_delete()

        assert [item.id for item in restored] == [shirt_id]
        assert undoable_closet.get_item(jeans_id) is None

    def test_skips_items_already_back(self, undoable_closet, sample_items):
        jeans_id, shirt_id = sample_items[0].id, sample_items[1].id
        undoable_closet.delete_items([jeans_id, shirt_id])
        undoable_closet.db.add(ClothingItem(id=jeans_id, name="Blue Denim Jeans", type=ClothingType.JEANS))
        undoable_closet.db.commit()

        restored = undoable_closet.undo_delete()

        assert [item.id for item in restored] == [shirt_id]
        assert len(undoable_closet.list_items()) == 3

    def test_nothing_deleted(self, undoable_closet):
        with pytest.raises(ValueError, match="Nothing to undo"):
            undoable_closet.undo_delete()

    def test_empty_batch_keeps_previous_deletion(self, undoable_closet, sample_items):
        undoable_closet.delete_item(sample_items[2].id)
        undoable_closet.delete_items([uuid.uuid4()])

        restored = undoable_closet.undo_delete()

        assert [item.name for item in restored] == ["Red Silk Blouse"]


@pytest.mark.unit
class TestResolveConflicts:
    """Test merging of item sets by id."""

    def item(self, item_id, added, label):
        return SimpleNamespace(id=item_id, date_added=added, label=label)

    def test_union_sorted_by_date(self):
        now = datetime(2024, 1, 1)
        a = self.item(uuid.uuid4(), now + timedelta(days=2), "a")
        b = self.item(uuid.uuid4(), now, "b")

        merged = resolve_conflicts([a], [b])

        assert [entry.label for entry in merged] == ["b", "a"]

    def test_later_remote_wins(self):
        shared = uuid.uuid4()
        now = datetime(2024, 1, 1)

        merged = resolve_conflicts(
            [self.item(shared, now, "local")],
            [self.item(shared, now + timedelta(hours=1), "remote")],
        )

        assert [entry.label for entry in merged] == ["remote"]

    def test_later_local_wins(self):
        shared = uuid.uuid4()
        now = datetime(2024, 1, 1)

        merged = resolve_conflicts(
            [self.item(shared, now + timedelta(hours=1), "local")],
            [self.item(shared, now, "remote")],
        )

        assert [entry.label for entry in merged] == ["local"]

    def test_tie_keeps_local(self):
        shared = uuid.uuid4()
        now = datetime(2024, 1, 1)

        merged = resolve_conflicts([self.item(shared, now, "local")], [self.item(shared, now, "remote")])

        assert [entry.label for entry in merged] == ["local"]
