"""
API tests for the product, cache administration and health endpoints
"""

import pytest
from fastapi.testclient import TestClient

from inventory_sync_service.app.core.database import InventoryDatabaseManager
from inventory_sync_service.app.core.event_management import InventorySyncContainer
from inventory_sync_service.app.core.setting import get_settings
from inventory_sync_service.app.events.base.memory_channel import (
    InMemoryDistributionChannel,
)
from inventory_sync_service.app.main import create_app
from inventory_sync_service.app.services.notification_sinks import (
    LoggingNotificationSink,
)

VENDOR_HEADERS = {"X-Vendor-Id": "v1"}


@pytest.fixture
def api_container():
    """Unstarted container; the application lifespan starts and closes it"""
    return InventorySyncContainer(
        settings=get_settings(),
        channel=InMemoryDistributionChannel(),
        sink=LoggingNotificationSink(),
        database=InventoryDatabaseManager("sqlite+aiosqlite:///:memory:"),
        instance_id="api-test",
    )


@pytest.fixture
def client(api_container):
    app = create_app(api_container)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def created_product(client, sample_product_data):
    response = client.post(
        "/api/v1/products/", json=sample_product_data, headers=VENDOR_HEADERS
    )
    assert response.status_code == 201
    return response.json()


class TestProductEndpoints:
    def test_create_product(self, client, created_product, api_container):
        """Test product creation returns the stored product and publishes an event."""
        assert created_product["product_id"] == "p1"
        assert created_product["vendor_id"] == "v1"
        assert created_product["availability"] == "available"
        assert api_container.channel.published[0]["eventType"] == "created"

    def test_create_for_other_vendor_is_forbidden(self, client, sample_product_data):
        response = client.post(
            "/api/v1/products/",
            json=sample_product_data,
            headers={"X-Vendor-Id": "v2"},
        )

        assert response.status_code == 403
        assert response.json()["error"]["type"] == "http_error"

    def test_missing_vendor_header_is_validation_error(self, client, sample_product_data):
        response = client.post("/api/v1/products/", json=sample_product_data)

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["type"] == "validation_error"
        assert error["path"] == "/api/v1/products/"

    def test_get_product(self, client, created_product):
        response = client.get("/api/v1/products/p1")

        assert response.status_code == 200
        assert response.json()["name"] == created_product["name"]

    def test_get_missing_product(self, client):
        """Test unknown products produce the standard error envelope."""
        response = client.get("/api/v1/products/missing")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["type"] == "product_not_found"
        assert error["details"] == {"product_id": "missing"}
        assert error["method"] == "GET"

    def test_update_product(self, client, created_product, api_container):
        response = client.patch(
            "/api/v1/products/p1", json={"base_price": 129.99}, headers=VENDOR_HEADERS
        )

        assert response.status_code == 200
        assert response.json()["base_price"] == pytest.approx(129.99)
        assert api_container.channel.published[-1]["eventType"] == "price_changed"

    def test_update_by_non_owner(self, client, created_product):
        response = client.patch(
            "/api/v1/products/p1",
            json={"base_price": 1.0},
            headers={"X-Vendor-Id": "v2"},
        )

        assert response.status_code == 403
        assert response.json()["error"]["type"] == "product_ownership_error"

    def test_update_availability(self, client, created_product):
        response = client.put(
            "/api/v1/products/p1/availability",
            json={"availability": "limited"},
            headers=VENDOR_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["availability"] == "limited"

    def test_invalid_availability_rejected(self, client, created_product):
        response = client.put(
            "/api/v1/products/p1/availability",
            json={"availability": "discontinued"},
            headers=VENDOR_HEADERS,
        )

        assert response.status_code == 422

    def test_bulk_availability(self, client, created_product):
        """Test bulk updates report per-item failures without failing the request."""
        response = client.post(
            "/api/v1/products/availability/bulk",
            json={
                "updates": [
                    {"product_id": "p1", "availability": "out_of_stock"},
                    {"product_id": "missing", "availability": "limited"},
                ]
            },
            headers=VENDOR_HEADERS,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] == 1
        assert body["failed"] == 1
        assert body["errors"][0]["product_id"] == "missing"
        assert len(body["event_ids"]) == 1

    def test_delete_product(self, client, created_product, api_container):
        response = client.delete("/api/v1/products/p1", headers=VENDOR_HEADERS)

        assert response.status_code == 204
        assert client.get("/api/v1/products/p1").status_code == 404
        assert api_container.channel.published[-1]["eventType"] == "deleted"

    def test_vendor_stats(self, client, created_product):
        response = client.get("/api/v1/products/vendors/v1/stats", headers=VENDOR_HEADERS)

        assert response.status_code == 200
        assert response.json() == {
            "vendor_id": "v1",
            "total_products": 1,
            "available": 1,
            "limited": 0,
            "out_of_stock": 0,
            "categories": {"electronics": 1},
        }

    def test_vendor_catalogue_is_cached(self, client, created_product):
        """Test the catalogue read populates the vendor_products cache domain."""
        first = client.get("/api/v1/products/vendors/v1")
        second = client.get("/api/v1/products/vendors/v1")

        assert first.status_code == 200
        assert [p["product_id"] for p in first.json()] == ["p1"]
        assert second.json() == first.json()
        stats = client.get("/api/v1/cache/stats").json()
        assert stats["sizeByScope"]["vendor_products"] == 1
        assert stats["hits"] == 1

    def test_vendor_stats_for_other_vendor_forbidden(self, client):
        response = client.get("/api/v1/products/vendors/v2/stats", headers=VENDOR_HEADERS)

        assert response.status_code == 403


class TestCacheEndpoints:
    def test_cache_stats(self, client):
        """Test cache statistics use camelCase keys."""
        response = client.get("/api/v1/cache/stats")

        assert response.status_code == 200
        stats = response.json()
        assert stats["totalEntries"] == 0
        assert stats["sizeByScope"] == {
            "vendor_search": 0,
            "product_search": 0,
            "vendor_products": 0,
        }
        assert stats["hitRate"] == 0.0
        assert stats["maxEntries"] == get_settings().SEARCH_CACHE_MAX_ENTRIES

    def test_clear_cache(self, client):
        response = client.delete("/api/v1/cache")

        assert response.status_code == 200
        assert response.json() == {"removed": 0}

    def test_event_stats(self, client, created_product):
        response = client.get("/api/v1/events/stats")

        assert response.status_code == 200
        stats = response.json()
        assert stats["bus"]["published"] == 1
        assert sorted(stats["bus"]["subscribers"]) == [
            "cache-invalidator",
            "realtime-notifier",
        ]
        assert stats["channel_consumer"]["skipped"] == 1


class TestHealthEndpoint:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert set(body["checks"]) == {"distribution_channel", "event_bus", "search_cache"}

    def test_health_before_startup(self, api_container):
        """Test the health endpoint reports startup without a running container."""
        client = TestClient(create_app(api_container))

        response = client.get("/health")

        assert response.json()["status"] == "starting"
