"""Service layer for Inventory Sync Service"""

from .inventory_service import InventoryService
from .notification_sinks import (
    HttpNotificationSink,
    LoggingNotificationSink,
    NotificationSink,
)
from .realtime_notifier import RealtimeNotifier
from .search_cache_service import SearchCacheService

__all__ = [
    "InventoryService",
    "SearchCacheService",
    "RealtimeNotifier",
    "NotificationSink",
    "LoggingNotificationSink",
    "HttpNotificationSink",
]
