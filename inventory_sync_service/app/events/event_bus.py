"""
Inventory Event Bus
===================

Accepts draft change events from the write path, stamps them with an id and a
timestamp, hands them to the distribution channel and then fans them out to
in-process subscribers.

Every subscriber owns a FIFO queue drained by its own worker task, so a slow or
failing callback never delays or breaks anyone else, and each subscriber sees
events in the order they were dispatched.
"""

import asyncio
import inspect
import itertools
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from ..core.errors import DistributionChannelError, InvalidChangeEventError
from ..core.setting import get_settings
from ..utils.logging import setup_inventory_logging as setup_logging
from .base import DistributionChannel, EventHandler
from .filters import ALL_EVENT_TYPES, EventTypeFilter, Subscription
from .schemas import ChangeEvent, DraftChangeEvent

logger = setup_logging(
    "inventory_sync_service.events.bus", log_level=get_settings().LOG_LEVEL
)

# Marks the end of a retired subscriber's queue
_STOP = object()


class _SubscriberChannel:
    """Queue and worker task for one registered subscription"""

    def __init__(self, subscription: Subscription):
        self.subscription = subscription
        self.queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self.delivered = 0
        self.failed = 0
        self.worker: Optional["asyncio.Task[None]"] = None

    @property
    def subscriber_id(self) -> str:
        return self.subscription.subscriber_id

    def start(self) -> None:
        self.worker = asyncio.ensure_future(self._run())

    def retire(self) -> None:
        """Stop after everything already queued has been delivered"""
        self.queue.put_nowait(_STOP)

    async def _run(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                if event is _STOP:
                    return
                await self._deliver(event)
            finally:
                self.queue.task_done()

    async def _deliver(self, event: ChangeEvent) -> None:
        try:
            result = self.subscription.callback(event)
            if inspect.isawaitable(result):
                await result
            self.delivered += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failed += 1
            logger.error(
                "Subscriber callback failed",
                extra={
                    "subscriber_id": self.subscriber_id,
                    "event_id": event.event_id,
                    "event_type": event.event_type.value,
                    "product_id": event.product_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "operation": "deliver_event_failed",
                },
                exc_info=True,
            )


class InventoryEventBus:
    """
    In-process fan-out of inventory change events.

    Instances are constructed explicitly and passed to their collaborators;
    nothing here is a module-level singleton.
    """

    def __init__(
        self,
        channel: DistributionChannel,
        instance_id: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.channel = channel
        self.instance_id = instance_id or uuid.uuid4().hex[:12]
        self._clock = clock
        self._counter = itertools.count(1)
        self._last_timestamp: Optional[datetime] = None
        self._subscribers: Dict[str, _SubscriberChannel] = {}
        # Channels that were unsubscribed but may still hold queued events
        self._retired: List[_SubscriberChannel] = []
        self.published = 0
        self.received = 0

    # Subscription management

    def subscribe(self, subscription: Subscription) -> None:
        """Register a subscriber; it only sees events published from now on"""
        previous = self._subscribers.pop(subscription.subscriber_id, None)
        if previous is not None:
            self._retire(previous)

        channel = _SubscriberChannel(subscription)
        channel.start()
        self._subscribers[subscription.subscriber_id] = channel

        logger.info(
            "Subscriber registered",
            extra={
                "subscriber_id": subscription.subscriber_id,
                "event_types": subscription.event_filter.describe(),
                "replaced": previous is not None,
                "operation": "subscribe",
            },
        )

    def subscribe_handler(
        self,
        subscriber_id: str,
        handler: EventHandler,
        event_filter: EventTypeFilter = ALL_EVENT_TYPES,
    ) -> None:
        self.subscribe(
            Subscription(
                subscriber_id=subscriber_id,
                event_filter=event_filter,
                callback=handler.handle,
            )
        )

    def unsubscribe(self, subscriber_id: str) -> bool:
        """
        Remove a subscriber. Unknown ids are ignored.

        Events that were already dispatched to the subscriber are still
        delivered; its worker exits once the queue is drained.
        """
        channel = self._subscribers.pop(subscriber_id, None)
        if channel is None:
            return False

        self._retire(channel)
        logger.info(
            "Subscriber removed",
            extra={"subscriber_id": subscriber_id, "operation": "unsubscribe"},
        )
        return True

    def is_subscribed(self, subscriber_id: str) -> bool:
        return subscriber_id in self._subscribers

    def _retire(self, channel: _SubscriberChannel) -> None:
        channel.retire()
        self._retired.append(channel)
        if channel.worker is not None:
            channel.worker.add_done_callback(
                lambda _task: self._forget_retired(channel)
            )

    def _forget_retired(self, channel: _SubscriberChannel) -> None:
        if channel in self._retired:
            self._retired.remove(channel)

    # Publishing

    async def publish(
        self, draft: Union[DraftChangeEvent, Mapping[str, Any]]
    ) -> ChangeEvent:
        """
        Publish a draft change event.

        The event is handed to the distribution channel first; if that fails
        ``DistributionChannelError`` is raised and no local subscriber sees
        the event. Local dispatch is initiated but not awaited.
        """
        draft = self._validate(draft)
        event = self._stamp(draft)

        try:
            await self.channel.publish(event)
        except DistributionChannelError:
            raise
        except Exception as e:
            logger.error(
                "Failed to publish change event to distribution channel",
                extra={
                    "event_id": event.event_id,
                    "event_type": event.event_type.value,
                    "product_id": event.product_id,
                    "channel": self.channel.name,
                    "error": str(e),
                    "operation": "publish_event_failed",
                },
            )
            raise DistributionChannelError(
                f"Could not publish {event.event_id} to {self.channel.name}",
                details={"event_id": event.event_id, "error": str(e)},
            ) from e

        self.published += 1
        dispatched = self._dispatch(event)

        logger.info(
            "Published change event",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type.value,
                "product_id": event.product_id,
                "vendor_id": event.vendor_id,
                "subscribers": dispatched,
                "operation": "publish_event",
            },
        )
        return event

    def deliver(self, event: ChangeEvent) -> int:
        """Dispatch an event that arrived from another process, locally only"""
        self.received += 1
        return self._dispatch(event)

    def _validate(
        self, draft: Union[DraftChangeEvent, Mapping[str, Any]]
    ) -> DraftChangeEvent:
        if not isinstance(draft, DraftChangeEvent):
            try:
                draft = DraftChangeEvent.model_validate(dict(draft))
            except ValidationError as e:
                raise InvalidChangeEventError(
                    "Invalid change event",
                    details={"errors": [error["msg"] for error in e.errors()]},
                ) from e

        missing = [
            name
            for name in ("event_type", "product_id", "vendor_id")
            if not getattr(draft, name, None)
        ]
        if missing:
            raise InvalidChangeEventError(
                "Change event is missing required fields",
                details={"missing": missing},
            )
        return draft

    def _stamp(self, draft: DraftChangeEvent) -> ChangeEvent:
        now_ms = int(self._clock() * 1000)
        sequence = next(self._counter)
        event_id = f"inv_{now_ms}_{sequence:06d}_{uuid.uuid4().hex[:8]}"

        timestamp = datetime.fromtimestamp(now_ms / 1000, tz=timezone.utc)
        if self._last_timestamp is not None and timestamp < self._last_timestamp:
            # Wall clock stepped backwards
            timestamp = self._last_timestamp
        self._last_timestamp = timestamp

        return ChangeEvent(
            event_type=draft.event_type,
            product_id=draft.product_id,
            vendor_id=draft.vendor_id,
            changes=draft.changes,
            snapshot=draft.snapshot,
            event_id=event_id,
            timestamp=timestamp,
            origin=self.instance_id,
        )

    def _dispatch(self, event: ChangeEvent) -> int:
        dispatched = 0
        for channel in list(self._subscribers.values()):
            if channel.subscription.matches(event):
                channel.queue.put_nowait(event)
                dispatched += 1
        return dispatched

    # Lifecycle

    async def wait_until_idle(self) -> None:
        """Block until every queued delivery has been processed"""
        channels = list(self._subscribers.values()) + self._retired
        await asyncio.gather(*(channel.queue.join() for channel in channels))
        self._retired = [
            channel
            for channel in self._retired
            if channel.worker is not None and not channel.worker.done()
        ]

    async def close(self) -> None:
        channels = list(self._subscribers.values()) + self._retired
        for channel in channels:
            if channel.worker is not None:
                channel.worker.cancel()
        await asyncio.gather(
            *(channel.worker for channel in channels if channel.worker is not None),
            return_exceptions=True,
        )
        self._subscribers.clear()
        self._retired.clear()
        logger.info(
            "Event bus closed",
            extra={"instance_id": self.instance_id, "operation": "close_bus"},
        )

    def get_event_stats(self) -> Dict[str, Any]:
        channels = list(self._subscribers.values())
        return {
            "instance_id": self.instance_id,
            "subscriber_count": len(channels),
            "subscribers": [channel.subscriber_id for channel in channels],
            "published": self.published,
            "received": self.received,
            "delivered": sum(channel.delivered for channel in channels),
            "failed": sum(channel.failed for channel in channels),
            "pending": sum(channel.queue.qsize() for channel in channels),
        }
