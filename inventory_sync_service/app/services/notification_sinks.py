"""
Notification sinks for realtime inventory updates.

A sink pushes one payload to one audience and reports whether it was
accepted. Transport errors may be raised; the notifier treats them like a
``False`` result.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Tuple

import httpx

from ..utils.logging import setup_inventory_logging as setup_logging

logger = setup_logging("inventory_sync_service.notification_sinks")


class NotificationSink(ABC):
    """Abstract base class for audience delivery"""

    @abstractmethod
    async def send(self, audience_id: str, payload: Dict[str, Any]) -> bool:
        """Deliver payload to every connection in the audience"""
        pass

    async def close(self) -> None:
        return None


class LoggingNotificationSink(NotificationSink):
    """Records deliveries and writes them to the log"""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, Dict[str, Any]]] = []

    async def send(self, audience_id: str, payload: Dict[str, Any]) -> bool:
        self.sent.append((audience_id, payload))
        logger.info(
            "Inventory notification",
            extra={
                "audience_id": audience_id,
                "event_type": payload.get("eventType"),
                "product_id": payload.get("productId"),
                "operation": "notify_audience",
            },
        )
        return True


class HttpNotificationSink(NotificationSink):
    """Client for broadcasting to audiences via the Notification Service API"""

    def __init__(self, notification_service_url: str, timeout: float = 5.0):
        self.base_url = notification_service_url.rstrip("/")
        self.timeout = timeout
        self.client = httpx.AsyncClient(timeout=timeout)

    async def send(self, audience_id: str, payload: Dict[str, Any]) -> bool:
        """Broadcast payload to an audience"""
        response = await self.client.post(
            f"{self.base_url}/api/v1/broadcasts",
            json={"audience": audience_id, "payload": payload},
        )
        if response.status_code in (200, 202):
            return True

        logger.warning(
            "Notification service rejected broadcast",
            extra={
                "audience_id": audience_id,
                "status_code": response.status_code,
                "operation": "notify_audience_rejected",
            },
        )
        return False

    async def close(self) -> None:
        """Close the HTTP client"""
        await self.client.aclose()
