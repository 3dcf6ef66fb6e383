"""
Inventory Sync Service Event Consumers
======================================

Feeds change events published by other service instances into the local
event bus, so their caches and connected clients are updated too.
"""

from typing import Any, Dict

from pydantic import ValidationError

from ..core.setting import get_settings
from ..utils.logging import setup_inventory_logging as setup_logging
from .event_bus import InventoryEventBus
from .schemas import ChangeEvent

settings = get_settings()
logger = setup_logging(
    "inventory_sync_service.events.consumers", log_level=settings.LOG_LEVEL
)


class ChannelEventConsumer:
    """Turns wire payloads from the distribution channel into local deliveries"""

    def __init__(self, event_bus: InventoryEventBus):
        self.event_bus = event_bus
        self.received = 0
        self.skipped = 0
        self.rejected = 0

    async def handle_wire(self, payload: Dict[str, Any]) -> None:
        try:
            event = ChangeEvent.from_wire(payload)
        except ValidationError as e:
            self.rejected += 1
            logger.warning(
                "Discarding malformed change event from channel",
                extra={
                    "event_id": payload.get("eventId"),
                    "error": str(e),
                    "operation": "consume_event_rejected",
                },
            )
            return

        if event.origin == self.event_bus.instance_id:
            # Already dispatched locally when it was published
            self.skipped += 1
            return

        self.received += 1
        dispatched = self.event_bus.deliver(event)
        logger.debug(
            "Delivered remote change event",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type.value,
                "origin": event.origin,
                "subscribers": dispatched,
                "operation": "consume_event",
            },
        )

    def get_stats(self) -> Dict[str, int]:
        return {
            "received": self.received,
            "skipped": self.skipped,
            "rejected": self.rejected,
        }
