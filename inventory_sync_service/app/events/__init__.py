"""
Events module for the Inventory Sync Service.

Bus:
    - InventoryEventBus: stamps, distributes and fans out change events

Distribution:
    - KafkaDistributionChannel / KafkaChannelConsumer: cross-process topic
    - InMemoryDistributionChannel: single-process development and tests

Consumers:
    - ChannelEventConsumer: delivers events from other instances locally

Event Types Supported:
    created, updated, deleted, availability_changed, price_changed
"""

from .base import DistributionChannel, EventHandler
from .event_bus import InventoryEventBus
from .event_consumers import ChannelEventConsumer
from .filters import (
    ALL_EVENT_TYPES,
    AllEventTypes,
    EventTypeFilter,
    SpecificEventTypes,
    Subscription,
    only,
    parse_event_type_filter,
)
from .schemas import ChangeEvent, ChangeEventType, DraftChangeEvent, FieldChange

__all__ = [
    # Bus
    "InventoryEventBus",
    "Subscription",
    "EventTypeFilter",
    "AllEventTypes",
    "SpecificEventTypes",
    "ALL_EVENT_TYPES",
    "only",
    "parse_event_type_filter",
    # Channels and consumers
    "DistributionChannel",
    "EventHandler",
    "ChannelEventConsumer",
    # Records
    "ChangeEvent",
    "ChangeEventType",
    "DraftChangeEvent",
    "FieldChange",
]
