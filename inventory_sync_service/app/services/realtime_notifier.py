"""
Realtime Notifier
=================

Maps each change event to the audiences that should hear about it and pushes
one notification per audience through the configured sink. Deliveries run as
detached side tasks, so a slow or failing audience never holds up the others.
"""

from typing import Any, Dict, List, Optional

from ..core.tasks import SideTaskRunner
from ..events.base import EventHandler
from ..events.schemas import ChangeEvent, ChangeEventType
from ..utils.logging import setup_inventory_logging as setup_logging
from .notification_sinks import NotificationSink

logger = setup_logging("inventory_sync_service.realtime_notifier")

NOTIFICATION_TYPE = "inventory_update"
GENERAL_AUDIENCE = "inventory:general"

# Event types that matter to everyone browsing the catalogue
_GENERAL_EVENT_TYPES = frozenset(
    {ChangeEventType.CREATED, ChangeEventType.AVAILABILITY_CHANGED}
)


def vendor_audience(vendor_id: str) -> str:
    return f"inventory:vendor:{vendor_id}"


def category_audience(category: str) -> str:
    return f"inventory:category:{category}"


class RealtimeNotifier(EventHandler):
    """Fans change events out to vendor, category and general audiences"""

    def __init__(
        self, sink: NotificationSink, task_runner: Optional[SideTaskRunner] = None
    ):
        self.sink = sink
        self.task_runner = task_runner or SideTaskRunner("realtime-notifier")
        self.sent = 0
        self.failed = 0

    def audiences_for(self, event: ChangeEvent) -> List[str]:
        audiences = [vendor_audience(event.vendor_id)]

        category = event.snapshot.category if event.snapshot else None
        if category is None and event.event_type == ChangeEventType.DELETED:
            prior = event.prior_snapshot()
            category = prior.category if prior else None
        if category:
            audiences.append(category_audience(category))

        if event.event_type in _GENERAL_EVENT_TYPES:
            audiences.append(GENERAL_AUDIENCE)
        return audiences

    @staticmethod
    def build_payload(event: ChangeEvent) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": NOTIFICATION_TYPE,
            "eventType": event.event_type.value,
            "productId": event.product_id,
            "vendorId": event.vendor_id,
            "timestamp": event.timestamp.isoformat(),
        }
        if event.event_type != ChangeEventType.DELETED and event.snapshot is not None:
            payload["product"] = event.snapshot.to_dict()
        return payload

    async def handle(self, event: ChangeEvent) -> None:
        """Spawn one delivery per audience and return without waiting"""
        payload = self.build_payload(event)
        for audience_id in self.audiences_for(event):
            self.task_runner.spawn(
                self._deliver(audience_id, payload, event.event_id),
                task_name=f"notify:{audience_id}",
            )

    async def _deliver(
        self, audience_id: str, payload: Dict[str, Any], event_id: str
    ) -> None:
        try:
            accepted = await self.sink.send(audience_id, payload)
        except Exception as e:
            self.failed += 1
            logger.warning(
                "Notification delivery failed",
                extra={
                    "audience_id": audience_id,
                    "event_id": event_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "operation": "notify_failed",
                },
            )
            return

        if accepted:
            self.sent += 1
            return

        self.failed += 1
        logger.warning(
            "Notification not accepted by sink",
            extra={
                "audience_id": audience_id,
                "event_id": event_id,
                "operation": "notify_rejected",
            },
        )

    async def drain(self) -> None:
        """Wait for deliveries already spawned"""
        await self.task_runner.drain()

    def get_stats(self) -> Dict[str, int]:
        return {
            "sent": self.sent,
            "failed": self.failed,
            "pending": self.task_runner.pending,
        }
