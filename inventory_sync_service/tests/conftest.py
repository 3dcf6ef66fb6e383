"""
Pytest configuration and fixtures for inventory sync service tests.
"""

import os
from typing import Any, AsyncGenerator, Dict

import pytest

# Set up test environment variables before importing anything else
os.environ.setdefault("APP_NAME", "Inventory Sync Service Test")
os.environ.setdefault("APP_VERSION", "1.0.0")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SERVICE_NAME", "inventory-sync-service")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("INVENTORY_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DISTRIBUTION_CHANNEL", "memory")
os.environ.setdefault("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
os.environ.setdefault("KAFKA_GROUP_ID", "inventory-sync-test")
os.environ.setdefault("NOTIFICATION_SINK", "logging")
os.environ.setdefault("SEARCH_CACHE_DEFAULT_TTL", "300")
os.environ.setdefault("SEARCH_CACHE_MAX_ENTRIES", "1000")

from inventory_sync_service.app.core.database import InventoryDatabaseManager
from inventory_sync_service.app.core.event_management import InventorySyncContainer
from inventory_sync_service.app.core.setting import get_settings
from inventory_sync_service.app.events.base.memory_channel import (
    InMemoryDistributionChannel,
)
from inventory_sync_service.app.events.event_bus import InventoryEventBus
from inventory_sync_service.app.models.product import Product  # noqa: F401
from inventory_sync_service.app.services.cache import SearchResultCache
from inventory_sync_service.app.services.notification_sinks import (
    LoggingNotificationSink,
)
from inventory_sync_service.tests.factories import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_channel() -> InMemoryDistributionChannel:
    return InMemoryDistributionChannel()


@pytest.fixture
async def event_bus(
    memory_channel: InMemoryDistributionChannel,
) -> AsyncGenerator[InventoryEventBus, None]:
    bus = InventoryEventBus(memory_channel, instance_id="test-bus")
    yield bus
    await bus.close()


@pytest.fixture
def search_cache(clock: FakeClock) -> SearchResultCache:
    return SearchResultCache(default_ttl=300, max_entries=100, clock=clock)


@pytest.fixture
async def database_manager() -> AsyncGenerator[InventoryDatabaseManager, None]:
    """Fresh in-memory SQLite database per test."""
    manager = InventoryDatabaseManager("sqlite+aiosqlite:///:memory:")
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest.fixture
async def db_session(
    database_manager: InventoryDatabaseManager,
) -> AsyncGenerator[Any, None]:
    async with database_manager.async_session_maker() as session:
        yield session


@pytest.fixture
def sample_product_data() -> Dict[str, Any]:
    return {
        "product_id": "p1",
        "vendor_id": "v1",
        "name": "Noise Cancelling Headphones",
        "description": "Over-ear, wireless",
        "category": "electronics",
        "base_price": 149.99,
        "currency": "USD",
        "availability": "available",
        "attributes": {"color": "black"},
        "images": ["https://cdn.test/p1.jpg"],
    }


@pytest.fixture
async def container(
    database_manager: InventoryDatabaseManager,
) -> AsyncGenerator[InventorySyncContainer, None]:
    """Started service container on the in-memory channel and logging sink"""
    built = InventorySyncContainer(
        settings=get_settings(),
        channel=InMemoryDistributionChannel(),
        sink=LoggingNotificationSink(),
        database=database_manager,
        instance_id="test-instance",
    )
    await built.start()
    yield built
    await built.close()
