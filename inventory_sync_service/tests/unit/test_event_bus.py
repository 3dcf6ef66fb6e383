"""
Unit tests for InventoryEventBus
"""

import asyncio
import re
from unittest.mock import AsyncMock

import pytest

from inventory_sync_service.app.core.errors import (
    DistributionChannelError,
    InvalidChangeEventError,
)
from inventory_sync_service.app.events.base.memory_channel import (
    InMemoryDistributionChannel,
)
from inventory_sync_service.app.events.event_bus import InventoryEventBus
from inventory_sync_service.app.events.filters import (
    ALL_EVENT_TYPES,
    Subscription,
    only,
)
from inventory_sync_service.app.events.schemas import ChangeEventType, FieldChange
from inventory_sync_service.tests.factories import FakeClock, make_draft


def collecting_subscription(subscriber_id, received, event_filter=ALL_EVENT_TYPES):
    async def callback(event):
        received.append(event)

    return Subscription(
        subscriber_id=subscriber_id, event_filter=event_filter, callback=callback
    )


class TestPublish:
    """Publishing, id assignment and timestamps."""

    @pytest.mark.asyncio
    async def test_publish_assigns_id_timestamp_and_origin(self, event_bus):
        """Test published events are stamped by the bus."""
        event = await event_bus.publish(make_draft())

        assert re.fullmatch(r"inv_\d+_\d{6}_[0-9a-f]{8}", event.event_id)
        assert event.timestamp.tzinfo is not None
        assert event.origin == "test-bus"
        assert event.product_id == "p1"
        assert event.vendor_id == "v1"

    @pytest.mark.asyncio
    async def test_event_ids_are_unique(self, event_bus):
        """Test N published events carry N distinct ids."""
        events = [await event_bus.publish(make_draft()) for _ in range(200)]

        assert len({event.event_id for event in events}) == 200

    @pytest.mark.asyncio
    async def test_event_ids_unique_with_frozen_clock(self, memory_channel):
        """Test ids stay unique when the clock does not move."""
        bus = InventoryEventBus(memory_channel, clock=FakeClock())
        try:
            events = [await bus.publish(make_draft()) for _ in range(50)]
        finally:
            await bus.close()

        assert len({event.event_id for event in events}) == 50

    @pytest.mark.asyncio
    async def test_timestamps_never_go_backwards(self, memory_channel):
        """Test timestamps are non-decreasing even if the wall clock steps back."""
        clock = FakeClock()
        bus = InventoryEventBus(memory_channel, clock=clock)
        try:
            first = await bus.publish(make_draft(product_id="p1"))
            clock.advance(-30)
            second = await bus.publish(make_draft(product_id="p1"))
            clock.advance(60)
            third = await bus.publish(make_draft(product_id="p1"))
        finally:
            await bus.close()

        assert first.timestamp <= second.timestamp <= third.timestamp
        assert third.timestamp > first.timestamp

    @pytest.mark.asyncio
    async def test_publish_sends_wire_payload_to_channel(
        self, event_bus, memory_channel
    ):
        """Test the channel receives the camelCase wire form."""
        event = await event_bus.publish(
            make_draft(
                event_type=ChangeEventType.PRICE_CHANGED,
                changes=(FieldChange(field="base_price", old_value=99.0, new_value=149.99),),
            )
        )

        assert len(memory_channel.published) == 1
        payload = memory_channel.published[0]
        assert payload["eventId"] == event.event_id
        assert payload["eventType"] == "price_changed"
        assert payload["productId"] == "p1"
        assert payload["changes"][0] == {
            "field": "base_price",
            "oldValue": 99.0,
            "newValue": 149.99,
        }
        assert payload["product"]["basePrice"] == 149.99

    @pytest.mark.asyncio
    async def test_publish_accepts_mapping(self, event_bus):
        """Test a plain mapping is validated into a draft."""
        event = await event_bus.publish(
            {"eventType": "created", "productId": "p9", "vendorId": "v9"}
        )

        assert event.event_type == ChangeEventType.CREATED
        assert event.product_id == "p9"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"eventType": "created", "productId": "", "vendorId": "v1"},
            {"eventType": "created", "productId": "p1", "vendorId": ""},
            {"eventType": "", "productId": "p1", "vendorId": "v1"},
            {"productId": "p1", "vendorId": "v1"},
        ],
    )
    async def test_publish_rejects_incomplete_events(
        self, event_bus, memory_channel, payload
    ):
        """Test missing ids or type raise InvalidChangeEventError."""
        with pytest.raises(InvalidChangeEventError):
            await event_bus.publish(payload)

        assert memory_channel.published == []


class TestDispatch:
    """Subscriber fan-out, isolation and ordering."""

    @pytest.mark.asyncio
    async def test_three_wildcard_subscribers_receive_event(self, event_bus):
        """Test every wildcard subscriber receives the published event."""
        received = {name: [] for name in ("a", "b", "c")}
        for name, bucket in received.items():
            event_bus.subscribe(collecting_subscription(name, bucket))

        change = FieldChange(field="availability", old_value="available", new_value="limited")
        event = await event_bus.publish(
            make_draft(event_type=ChangeEventType.AVAILABILITY_CHANGED, changes=(change,))
        )
        await event_bus.wait_until_idle()

        for bucket in received.values():
            assert len(bucket) == 1
            assert bucket[0].product_id == event.product_id
            assert bucket[0].vendor_id == event.vendor_id
            assert bucket[0].changes == (change,)

    @pytest.mark.asyncio
    async def test_unsubscribe_after_dispatch_still_delivers(self, event_bus):
        """Test unsubscribing mid-flight does not drop already dispatched events."""
        release = asyncio.Event()
        received = {name: [] for name in ("a", "b", "c")}

        async def slow_callback(event):
            await release.wait()
            received["a"].append(event)

        event_bus.subscribe(
            Subscription(
                subscriber_id="a", event_filter=ALL_EVENT_TYPES, callback=slow_callback
            )
        )
        event_bus.subscribe(collecting_subscription("b", received["b"]))
        event_bus.subscribe(collecting_subscription("c", received["c"]))

        await event_bus.publish(make_draft())
        await event_bus.publish(make_draft())
        assert event_bus.unsubscribe("a") is True
        release.set()
        await event_bus.wait_until_idle()

        assert len(received["a"]) == 2
        assert len(received["b"]) == 2
        assert len(received["c"]) == 2

        # Nothing new reaches the removed subscriber
        await event_bus.publish(make_draft())
        await event_bus.wait_until_idle()
        assert len(received["a"]) == 2
        assert len(received["b"]) == 3

    @pytest.mark.asyncio
    async def test_failing_subscriber_is_isolated(self, event_bus):
        """Test a rejecting callback affects neither publisher nor other subscribers."""
        failing = AsyncMock(side_effect=RuntimeError("boom"))
        succeeding = AsyncMock(return_value=None)
        event_bus.subscribe(
            Subscription(subscriber_id="failing", event_filter=ALL_EVENT_TYPES, callback=failing)
        )
        event_bus.subscribe(
            Subscription(
                subscriber_id="succeeding", event_filter=ALL_EVENT_TYPES, callback=succeeding
            )
        )

        event = await event_bus.publish(make_draft())
        await event_bus.wait_until_idle()

        failing.assert_awaited_once_with(event)
        succeeding.assert_awaited_once_with(event)
        stats = event_bus.get_event_stats()
        assert stats["failed"] == 1
        assert stats["delivered"] == 1

    @pytest.mark.asyncio
    async def test_failing_subscriber_keeps_receiving(self, event_bus):
        """Test a subscriber that raised once still gets later events."""
        calls = []

        def flaky(event):
            calls.append(event.event_id)
            if len(calls) == 1:
                raise ValueError("first call fails")

        event_bus.subscribe(
            Subscription(subscriber_id="flaky", event_filter=ALL_EVENT_TYPES, callback=flaky)
        )
        await event_bus.publish(make_draft())
        await event_bus.publish(make_draft())
        await event_bus.wait_until_idle()

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_specific_filter_only_receives_matching_types(self, event_bus):
        """Test subscribers only see event types in their filter."""
        received = []
        event_bus.subscribe(
            collecting_subscription(
                "deletes", received, only(ChangeEventType.DELETED)
            )
        )

        await event_bus.publish(make_draft(event_type=ChangeEventType.UPDATED))
        deleted = await event_bus.publish(
            make_draft(event_type=ChangeEventType.DELETED, snapshot=False)
        )
        await event_bus.wait_until_idle()

        assert [event.event_id for event in received] == [deleted.event_id]

    @pytest.mark.asyncio
    async def test_subscriber_sees_same_entity_events_in_order(self, event_bus):
        """Test per-subscriber delivery order matches publish order."""
        received = []

        async def callback(event):
            # Yield so a racing worker would have the chance to reorder
            await asyncio.sleep(0)
            received.append(event.event_id)

        event_bus.subscribe(
            Subscription(subscriber_id="ordered", event_filter=ALL_EVENT_TYPES, callback=callback)
        )
        published = [
            (await event_bus.publish(make_draft(product_id="p1"))).event_id
            for _ in range(20)
        ]
        await event_bus.wait_until_idle()

        assert received == published

    @pytest.mark.asyncio
    async def test_subscribe_has_no_backlog(self, event_bus):
        """Test a new subscriber does not see earlier events."""
        await event_bus.publish(make_draft())
        received = []
        event_bus.subscribe(collecting_subscription("late", received))
        await event_bus.wait_until_idle()

        assert received == []

    @pytest.mark.asyncio
    async def test_resubscribe_replaces_registration(self, event_bus):
        """Test re-using a subscriber id replaces the earlier callback."""
        first, second = [], []
        event_bus.subscribe(collecting_subscription("dup", first))
        event_bus.subscribe(collecting_subscription("dup", second))

        await event_bus.publish(make_draft())
        await event_bus.wait_until_idle()

        assert first == []
        assert len(second) == 1
        assert event_bus.get_event_stats()["subscriber_count"] == 1

    @pytest.mark.asyncio
    async def test_retired_subscribers_are_released(self, event_bus):
        """Test repeated subscribe and unsubscribe cycles leave nothing behind."""
        # Execute
        for _ in range(500):
            event_bus.subscribe(collecting_subscription("churn", []))
            event_bus.subscribe(collecting_subscription("churn", []))
            event_bus.unsubscribe("churn")
        await asyncio.sleep(0.05)

        # Assert
        assert event_bus._retired == []
        assert event_bus.get_event_stats()["subscriber_count"] == 0

    @pytest.mark.asyncio
    async def test_retired_subscriber_kept_until_drained(self, event_bus):
        release = asyncio.Event()
        received = []

        async def slow_callback(event):
            await release.wait()
            received.append(event)

        event_bus.subscribe(
            Subscription(
                subscriber_id="slow", event_filter=ALL_EVENT_TYPES, callback=slow_callback
            )
        )
        await event_bus.publish(make_draft())
        event_bus.unsubscribe("slow")
        await asyncio.sleep(0.01)
        assert len(event_bus._retired) == 1

        release.set()
        await asyncio.sleep(0.05)

        assert len(received) == 1
        assert event_bus._retired == []

    @pytest.mark.asyncio
    async def test_unsubscribe_unknown_id_is_noop(self, event_bus):
        """Test unsubscribing twice or an unknown id is harmless."""
        event_bus.subscribe(collecting_subscription("once", []))

        assert event_bus.unsubscribe("once") is True
        assert event_bus.unsubscribe("once") is False
        assert event_bus.unsubscribe("never") is False

    @pytest.mark.asyncio
    async def test_unsubscribe_from_inside_callback(self, event_bus):
        """Test a subscriber may remove itself while handling an event."""
        received = []

        async def callback(event):
            received.append(event)
            event_bus.unsubscribe("self-removing")

        event_bus.subscribe(
            Subscription(
                subscriber_id="self-removing", event_filter=ALL_EVENT_TYPES, callback=callback
            )
        )
        await event_bus.publish(make_draft())
        await event_bus.wait_until_idle()
        await event_bus.publish(make_draft())
        await event_bus.wait_until_idle()

        assert len(received) == 1
        assert not event_bus.is_subscribed("self-removing")

    @pytest.mark.asyncio
    async def test_publish_does_not_wait_for_subscribers(self, event_bus):
        """Test publish returns while a subscriber is still blocked."""
        release = asyncio.Event()
        finished = []

        async def blocked(event):
            await release.wait()
            finished.append(event)

        event_bus.subscribe(
            Subscription(subscriber_id="blocked", event_filter=ALL_EVENT_TYPES, callback=blocked)
        )
        await asyncio.wait_for(event_bus.publish(make_draft()), timeout=1)
        assert finished == []

        release.set()
        await event_bus.wait_until_idle()
        assert len(finished) == 1


class TestChannelFailure:
    """Distribution channel failures on the publish path."""

    @pytest.mark.asyncio
    async def test_channel_error_propagates_without_local_dispatch(self, memory_channel):
        """Test an unavailable channel fails the publish and skips subscribers."""
        bus = InventoryEventBus(memory_channel)
        received = []
        bus.subscribe(collecting_subscription("local", received))
        memory_channel.available = False

        try:
            with pytest.raises(DistributionChannelError):
                await bus.publish(make_draft())
            await bus.wait_until_idle()
        finally:
            await bus.close()

        assert received == []
        assert bus.get_event_stats()["published"] == 0

    @pytest.mark.asyncio
    async def test_unexpected_channel_error_is_wrapped(self):
        """Test arbitrary channel exceptions surface as DistributionChannelError."""
        channel = InMemoryDistributionChannel()
        channel.publish = AsyncMock(side_effect=ConnectionError("broker down"))
        bus = InventoryEventBus(channel)

        try:
            with pytest.raises(DistributionChannelError) as exc_info:
                await bus.publish(make_draft())
        finally:
            await bus.close()

        assert isinstance(exc_info.value.__cause__, ConnectionError)


class TestDeliver:
    """Local-only delivery of events received from other instances."""

    @pytest.mark.asyncio
    async def test_deliver_dispatches_without_republishing(self, memory_channel):
        """Test deliver reaches subscribers but not the channel."""
        origin_bus = InventoryEventBus(InMemoryDistributionChannel(), instance_id="other")
        local_bus = InventoryEventBus(memory_channel, instance_id="local")
        received = []
        local_bus.subscribe(collecting_subscription("local", received))

        try:
            event = await origin_bus.publish(make_draft())
            assert local_bus.deliver(event) == 1
            await local_bus.wait_until_idle()
        finally:
            await origin_bus.close()
            await local_bus.close()

        assert received == [event]
        assert memory_channel.published == []
        assert local_bus.get_event_stats()["received"] == 1


class TestEventStats:
    @pytest.mark.asyncio
    async def test_stats_report_subscribers_and_counters(self, event_bus):
        """Test get_event_stats reflects registrations and traffic."""
        event_bus.subscribe(collecting_subscription("one", []))
        event_bus.subscribe(collecting_subscription("two", []))
        await event_bus.publish(make_draft())
        await event_bus.wait_until_idle()

        stats = event_bus.get_event_stats()
        assert stats["subscriber_count"] == 2
        assert sorted(stats["subscribers"]) == ["one", "two"]
        assert stats["published"] == 1
        assert stats["delivered"] == 2
        assert stats["failed"] == 0
        assert stats["pending"] == 0
