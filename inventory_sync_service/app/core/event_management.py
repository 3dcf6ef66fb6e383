"""
Inventory Sync Service Event Management
Builds and owns the event bus, its distribution channel, and the built-in
subscribers (cache invalidator and realtime notifier).
"""

from typing import Any, Dict, Optional

from ..events.base import DistributionChannel
from ..events.base.kafka_client import KafkaChannelConsumer, KafkaDistributionChannel
from ..events.base.memory_channel import InMemoryDistributionChannel
from ..events.event_bus import InventoryEventBus
from ..events.event_consumers import ChannelEventConsumer
from ..repository.product_repository import ProductRepository
from ..services.cache import SearchResultCache
from ..services.cache.invalidation import CacheInvalidator
from ..services.inventory_service import InventoryService
from ..services.notification_sinks import (
    HttpNotificationSink,
    LoggingNotificationSink,
    NotificationSink,
)
from ..services.realtime_notifier import RealtimeNotifier
from ..services.search_cache_service import SearchCacheService
from ..utils.logging import setup_inventory_logging as setup_logging
from .database import InventoryDatabaseManager
from .setting import InventorySyncSettings, get_settings
from .tasks import SideTaskRunner

logger = setup_logging(
    "inventory_sync_service.events", log_level=get_settings().LOG_LEVEL
)

CACHE_INVALIDATOR_ID = "cache-invalidator"
REALTIME_NOTIFIER_ID = "realtime-notifier"


def build_distribution_channel(settings: InventorySyncSettings) -> DistributionChannel:
    if settings.DISTRIBUTION_CHANNEL == "memory":
        return InMemoryDistributionChannel()
    if settings.DISTRIBUTION_CHANNEL == "kafka":
        return KafkaDistributionChannel(
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            client_id=f"{settings.SERVICE_NAME}-producer",
            topic=settings.KAFKA_TOPIC_INVENTORY_UPDATES,
            max_retries=settings.KAFKA_MAX_RETRIES,
            retry_delay=settings.KAFKA_RETRY_DELAY,
            connect_timeout=settings.KAFKA_CONNECT_TIMEOUT,
        )
    raise ValueError(f"Unknown distribution channel: {settings.DISTRIBUTION_CHANNEL}")


def build_notification_sink(settings: InventorySyncSettings) -> NotificationSink:
    if settings.NOTIFICATION_SINK == "logging":
        return LoggingNotificationSink()
    if settings.NOTIFICATION_SINK == "http":
        if not settings.NOTIFICATION_SERVICE_URL:
            raise ValueError("NOTIFICATION_SERVICE_URL is required for the http sink")
        return HttpNotificationSink(
            settings.NOTIFICATION_SERVICE_URL, timeout=settings.NOTIFICATION_TIMEOUT
        )
    raise ValueError(f"Unknown notification sink: {settings.NOTIFICATION_SINK}")


class InventorySyncContainer:
    """
    Explicitly constructed service graph.

    One container is usually built per process at startup, but nothing stops
    tests (or a multi-tenant host) from building several side by side.
    """

    def __init__(
        self,
        settings: InventorySyncSettings,
        channel: DistributionChannel,
        sink: NotificationSink,
        database: Optional[InventoryDatabaseManager] = None,
        instance_id: Optional[str] = None,
    ):
        self.settings = settings
        self.channel = channel
        self.sink = sink
        self.database = database

        self.event_bus = InventoryEventBus(channel, instance_id=instance_id)
        self.cache = SearchResultCache(
            default_ttl=settings.SEARCH_CACHE_DEFAULT_TTL,
            max_entries=settings.SEARCH_CACHE_MAX_ENTRIES,
            eviction_target=settings.SEARCH_CACHE_EVICTION_TARGET,
        )
        self.search_cache = SearchCacheService(self.cache)
        self.invalidator = CacheInvalidator(self.cache)
        self.notification_tasks = SideTaskRunner("realtime-notifier")
        self.notifier = RealtimeNotifier(sink, self.notification_tasks)
        self.channel_consumer = ChannelEventConsumer(self.event_bus)
        self.kafka_consumer: Optional[KafkaChannelConsumer] = None
        self.started = False

    @classmethod
    def from_settings(
        cls, settings: Optional[InventorySyncSettings] = None
    ) -> "InventorySyncContainer":
        settings = settings or get_settings()
        database = InventoryDatabaseManager(
            database_url=settings.INVENTORY_DATABASE_URL,
            echo=settings.DEBUG,
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
        )
        return cls(
            settings=settings,
            channel=build_distribution_channel(settings),
            sink=build_notification_sink(settings),
            database=database,
        )

    def inventory_service(self, session: Any) -> InventoryService:
        """Write path bound to one database session"""
        return InventoryService(ProductRepository(session), self.event_bus)

    async def start(self) -> None:
        """Connect the channel and register the built-in subscribers"""
        logger.info(
            "Initializing inventory event infrastructure",
            extra={
                "operation": "init_events",
                "channel": self.channel.name,
                "instance_id": self.event_bus.instance_id,
            },
        )

        self.event_bus.subscribe_handler(CACHE_INVALIDATOR_ID, self.invalidator)
        self.event_bus.subscribe_handler(REALTIME_NOTIFIER_ID, self.notifier)

        await self.channel.start()

        if isinstance(self.channel, KafkaDistributionChannel):
            self.kafka_consumer = KafkaChannelConsumer(
                bootstrap_servers=self.settings.KAFKA_BOOTSTRAP_SERVERS,
                group_id=self.settings.KAFKA_GROUP_ID,
                client_id=f"{self.settings.SERVICE_NAME}-consumer",
                topic=self.settings.KAFKA_TOPIC_INVENTORY_UPDATES,
                listener=self.channel_consumer.handle_wire,
                connect_timeout=self.settings.KAFKA_CONNECT_TIMEOUT,
            )
            await self.kafka_consumer.start()
        elif isinstance(self.channel, InMemoryDistributionChannel):
            self.channel.add_listener(self.channel_consumer.handle_wire)

        self.started = True
        logger.info(
            "Inventory event infrastructure ready",
            extra={"operation": "init_events_complete", "channel": self.channel.name},
        )

    async def close(self) -> None:
        """Drain in-flight work and release every resource"""
        try:
            if self.kafka_consumer:
                await self.kafka_consumer.stop()
            await self.event_bus.wait_until_idle()
            await self.notification_tasks.drain()
            await self.event_bus.close()
            await self.channel.stop()
            await self.sink.close()
            if self.database:
                await self.database.close()
            logger.info(
                "Inventory event infrastructure closed",
                extra={"operation": "close_events_complete"},
            )
        except Exception as e:
            logger.error(
                "Error closing inventory event infrastructure",
                extra={"operation": "close_events_error", "error": str(e)},
            )
            raise
        finally:
            self.started = False

    async def health_check(self) -> Dict[str, Any]:
        channel_healthy = await self.channel.health_check()
        return {
            "channel": {"name": self.channel.name, "healthy": channel_healthy},
            "event_bus": {
                "subscribers": self.event_bus.get_event_stats()["subscriber_count"]
            },
            "started": self.started,
        }

    def get_event_stats(self) -> Dict[str, Any]:
        return {
            "bus": self.event_bus.get_event_stats(),
            "invalidator": self.invalidator.get_stats(),
            "notifier": self.notifier.get_stats(),
            "channel_consumer": self.channel_consumer.get_stats(),
        }
