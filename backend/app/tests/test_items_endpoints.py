"""
Integration tests for closet item endpoints.

Tests:
- Item CRUD
- Filters, search and statistics
- Batch delete and clearing the closet
- Front/back photos
"""
import uuid

import pytest

ITEMS_URL = "/api/v1/items/"


@pytest.mark.integration
class TestItemCrud:
    """Test create/read/update/delete."""

    def test_create_item(self, client):
        response = client.post(ITEMS_URL, json={
            "name": "Green Linen Shirt",
            "type": "Shirt",
            "material": "Linen",
            "color": "Green",
            "size": "L",
            "purchase_price": 45.0,
            "season": "Summer",
            "tags": ["breezy"],
        })

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Green Linen Shirt"
        assert data["type"] == "Shirt"
        assert data["material"] == "Linen"
        assert data["condition"] == "Good"
        assert data["tags"] == ["breezy"]
        assert data["has_front_image"] is False
        assert "id" in data
        assert "date_added" in data

    def test_create_blank_name(self, client):
        response = client.post(ITEMS_URL, json={"name": ""})

        assert response.status_code == 201
        assert response.json()["name"] == "Untitled Item"
        assert response.json()["type"] == "Unknown"

    def test_create_invalid_type(self, client):
        response = client.post(ITEMS_URL, json={"name": "x", "type": "Toga"})

        assert response.status_code == 422

    def test_create_negative_price(self, client):
        response = client.post(ITEMS_URL, json={"name": "x", "purchase_price": -1})

        assert response.status_code == 422

    def test_get_item(self, client, sample_items):
        response = client.get(f"{ITEMS_URL}{sample_items[0].id}")

        assert response.status_code == 200
        assert response.json()["brand"] == "Levi's"

    def test_get_missing_item(self, client):
        response = client.get(f"{ITEMS_URL}{uuid.uuid4()}")

        assert response.status_code == 404

    def test_patch_item(self, client, sample_items):
        response = client.patch(f"{ITEMS_URL}{sample_items[1].id}", json={"color": "Cream", "condition": "Fair"})

        assert response.status_code == 200
        data = response.json()
        assert data["color"] == "Cream"
        assert data["condition"] == "Fair"
        assert data["name"] == "White Cotton T-Shirt"

    def test_patch_missing_item(self, client):
        response = client.patch(f"{ITEMS_URL}{uuid.uuid4()}", json={"color": "Cream"})

        assert response.status_code == 404

    def test_delete_item(self, client, sample_items):
        response = client.delete(f"{ITEMS_URL}{sample_items[2].id}")

        assert response.status_code == 204
        assert client.get(f"{ITEMS_URL}{sample_items[2].id}").status_code == 404

    def test_delete_missing_item(self, client):
        assert client.delete(f"{ITEMS_URL}{uuid.uuid4()}").status_code == 404


@pytest.mark.integration
class TestItemQueries:
    """Test list filters, search and statistics."""

    def test_list_all(self, client, sample_items):
        response = client.get(ITEMS_URL)

        assert response.status_code == 200
        assert [item["name"] for item in response.json()] == [
            "Blue Denim Jeans", "White Cotton T-Shirt", "Red Silk Blouse",
        ]

    def test_filter_by_type(self, client, sample_items):
        response = client.get(ITEMS_URL, params={"type": "T-Shirt"})

        assert [item["name"] for item in response.json()] == ["White Cotton T-Shirt"]

    def test_filter_by_color(self, client, sample_items):
        response = client.get(ITEMS_URL, params={"color": "RED"})

        assert [item["name"] for item in response.json()] == ["Red Silk Blouse"]

    def test_search(self, client, sample_items):
        response = client.get(ITEMS_URL, params={"q": "cotton"})

        assert [item["name"] for item in response.json()] == ["White Cotton T-Shirt"]

    def test_search_combined_with_filter(self, client, sample_items):
        response = client.get(ITEMS_URL, params={"q": "e", "material": "Denim"})

        assert [item["name"] for item in response.json()] == ["Blue Denim Jeans"]

    def test_invalid_filter(self, client):
        assert client.get(ITEMS_URL, params={"material": "Kevlar"}).status_code == 422

    def test_statistics(self, client, sample_items):
        response = client.get(f"{ITEMS_URL}stats")

        assert response.status_code == 200
        data = response.json()
        assert data["total_items"] == 3
        assert data["by_material"]["Denim"] == 1


@pytest.mark.integration
class TestBulkDeletion:
    """Test batch delete and clear."""

    def test_batch_delete(self, client, sample_items):
        response = client.post(f"{ITEMS_URL}batch-delete", json={
            "ids": [str(sample_items[0].id), str(uuid.uuid4())],
        })

        assert response.status_code == 200
        assert response.json() == {"deleted": 1}

    def test_batch_delete_requires_ids(self, client):
        assert client.post(f"{ITEMS_URL}batch-delete", json={"ids": []}).status_code == 422

    def test_clear_requires_confirmation(self, client, sample_items):
        response = client.delete(ITEMS_URL)

        assert response.status_code == 400
        assert len(client.get(ITEMS_URL).json()) == 3

    def test_clear_closet(self, client, sample_items):
        response = client.delete(ITEMS_URL, params={"confirm": "true"})

        assert response.status_code == 200
        assert response.json() == {"deleted": 3}
        assert client.get(ITEMS_URL).json() == []

    def test_undo_batch_delete(self, client, sample_items):
        before = [entry["id"] for entry in client.get(ITEMS_URL).json()]
        client.post(f"{ITEMS_URL}batch-delete", json={
            "ids": [str(sample_items[0].id), str(sample_items[2].id)],
        })

        response = client.post(f"{ITEMS_URL}undo-delete")

        assert response.status_code == 200
        assert [entry["name"] for entry in response.json()] == ["Blue Denim Jeans", "Red Silk Blouse"]
        assert [entry["id"] for entry in client.get(ITEMS_URL).json()] == before

    def test_undo_single_delete(self, client, sample_items):
        item_id = str(sample_items[1].id)
        client.delete(f"{ITEMS_URL}{item_id}")

        response = client.post(f"{ITEMS_URL}undo-delete")

        assert response.status_code == 200
        assert client.get(f"{ITEMS_URL}{item_id}").json()["name"] == "White Cotton T-Shirt"

    def test_undo_without_deletion(self, client):
        response = client.post(f"{ITEMS_URL}undo-delete")

        assert response.status_code == 404
        assert response.json()["detail"] == "Nothing to undo"


@pytest.mark.integration
class TestItemImages:
    """Test front/back photo endpoints."""

    def upload(self, client, item_id, side, data):
        return client.put(
            f"{ITEMS_URL}{item_id}/images/{side}",
            files={"file": ("photo.png", data, "image/png")},
        )

    def test_upload_and_download(self, client, sample_items, garment_photo):
        item_id = sample_items[0].id

        response = self.upload(client, item_id, "front", garment_photo)

        assert response.status_code == 200
        assert response.json()["has_front_image"] is True

        image = client.get(f"{ITEMS_URL}{item_id}/images/front")
        assert image.status_code == 200
        assert image.headers["content-type"] == "image/jpeg"
        assert image.content[:2] == b"\xff\xd8"

    def test_download_missing_image(self, client, sample_items):
        response = client.get(f"{ITEMS_URL}{sample_items[0].id}/images/back")

        assert response.status_code == 404

    def test_delete_image(self, client, sample_items, garment_photo):
        item_id = sample_items[0].id
        self.upload(client, item_id, "back", garment_photo)

        response = client.delete(f"{ITEMS_URL}{item_id}/images/back")

        assert response.status_code == 200
        assert response.json()["has_back_image"] is False

    def test_invalid_side(self, client, sample_items, garment_photo):
        response = self.upload(client, sample_items[0].id, "top", garment_photo)

        assert response.status_code == 400

    def test_not_an_image(self, client, sample_items):
        response = self.upload(client, sample_items[0].id, "front", b"plain text")

        assert response.status_code == 400

    def test_empty_upload(self, client, sample_items):
        response = self.upload(client, sample_items[0].id, "front", b"")

        assert response.status_code == 400

    def test_upload_missing_item(self, client, garment_photo):
        response = self.upload(client, uuid.uuid4(), "front", garment_photo)

        assert response.status_code == 404
