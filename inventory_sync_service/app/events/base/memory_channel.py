"""
In-process distribution channel.

Used for local development and tests. Every published event is recorded in its
wire form and forwarded to the registered listeners, which lets several event
buses in one process stand in for several service instances.
"""

from typing import Any, Dict, List

from ...core.errors import DistributionChannelError
from ..schemas import ChangeEvent
from . import DistributionChannel, WireListener


class InMemoryDistributionChannel(DistributionChannel):
    name = "memory"

    def __init__(self) -> None:
        self.published: List[Dict[str, Any]] = []
        self._listeners: List[WireListener] = []
        self.available = True

    def add_listener(self, listener: WireListener) -> None:
        self._listeners.append(listener)

    async def publish(self, event: ChangeEvent) -> None:
        if not self.available:
            raise DistributionChannelError(
                "In-memory channel unavailable", details={"event_id": event.event_id}
            )
        payload = event.to_wire()
        self.published.append(payload)
        for listener in list(self._listeners):
            await listener(payload)

    async def health_check(self) -> bool:
        return self.available
