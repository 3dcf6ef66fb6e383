"""
Inventory Sync Service event infrastructure base classes and interfaces.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict

from ..schemas import ChangeEvent

WireListener = Callable[[Dict[str, Any]], Awaitable[None]]


class EventHandler(ABC):
    """Abstract base class for bus subscribers"""

    @abstractmethod
    async def handle(self, event: ChangeEvent) -> None:
        """Handle the event"""
        pass


class DistributionChannel(ABC):
    """
    Abstract base class for the cross-process distribution channel.

    ``publish`` must raise when the event could not be handed to the channel;
    the bus surfaces that failure to the publisher.
    """

    name = "channel"

    async def start(self) -> None:
        """Connect to the underlying broker"""
        return None

    async def stop(self) -> None:
        """Disconnect from the underlying broker"""
        return None

    @abstractmethod
    async def publish(self, event: ChangeEvent) -> None:
        """Publish an event"""
        pass

    async def health_check(self) -> bool:
        return True
