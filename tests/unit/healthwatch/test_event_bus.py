"""
Tests for the in-process event bus.

Covers fan-out, unsubscribe semantics, subscriber fault isolation and the
no-replay rule.
"""

import asyncio
from datetime import UTC

import pytest

from healthwatch.domain.models import EventType
from healthwatch.services.event_bus import EventBus, MonitoringEvent


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


class TestPublish:
    def test_publish_delivers_envelope_to_every_subscriber(self, bus: EventBus) -> None:
        first: list[MonitoringEvent] = []
        second: list[MonitoringEvent] = []
        bus.subscribe(first.append)
        bus.subscribe(second.append)

        event = bus.publish(EventType.METRICS, {"sample": 1})

        assert first == [event]
        assert second == [event]
        assert event.type == EventType.METRICS
        assert event.data == {"sample": 1}
        assert event.timestamp.tzinfo == UTC

    def test_failing_subscriber_does_not_block_others(self, bus: EventBus) -> None:
        received: list[MonitoringEvent] = []

        def broken(event: MonitoringEvent) -> None:
            raise RuntimeError("subscriber bug")

        bus.subscribe(broken)
        bus.subscribe(received.append)

        bus.publish(EventType.ALERT, "payload")
        bus.publish(EventType.ALERT, "payload-2")

        assert [e.data for e in received] == ["payload", "payload-2"]

    def test_late_subscriber_gets_no_replay(self, bus: EventBus) -> None:
        bus.publish(EventType.HEALTH, [])
        received: list[MonitoringEvent] = []
        bus.subscribe(received.append)

        assert received == []

        bus.publish(EventType.HEALTH, ["now"])
        assert [e.data for e in received] == [["now"]]

    def test_publish_without_subscribers_is_a_no_op(self, bus: EventBus) -> None:
        event = bus.publish(EventType.ALERT_RESOLVED, None)
        assert event.type == EventType.ALERT_RESOLVED


class TestSubscribe:
    def test_unsubscribe_stops_only_that_callback(self, bus: EventBus) -> None:
        kept: list[MonitoringEvent] = []
        dropped: list[MonitoringEvent] = []
        bus.subscribe(kept.append)
        unsubscribe = bus.subscribe(dropped.append)

        bus.publish(EventType.METRICS, 1)
        unsubscribe()
        bus.publish(EventType.METRICS, 2)

        assert [e.data for e in kept] == [1, 2]
        assert [e.data for e in dropped] == [1]
        assert bus.subscriber_count == 1

    def test_unsubscribe_twice_is_harmless(self, bus: EventBus) -> None:
        unsubscribe = bus.subscribe(lambda event: None)
        unsubscribe()
        unsubscribe()
        assert bus.subscriber_count == 0

    def test_same_callable_subscribed_twice_is_removed_independently(
        self, bus: EventBus
    ) -> None:
        received: list[MonitoringEvent] = []
        first = bus.subscribe(received.append)
        bus.subscribe(received.append)

        first()
        bus.publish(EventType.ALERT, "x")

        assert len(received) == 1

    def test_clear_drops_all_subscribers(self, bus: EventBus) -> None:
        received: list[MonitoringEvent] = []
        bus.subscribe(received.append)
        bus.clear()

        bus.publish(EventType.ALERT, "x")

        assert received == []
        assert bus.subscriber_count == 0


class TestAsyncSubscribers:
    async def test_coroutine_subscriber_is_scheduled(self, bus: EventBus) -> None:
        received: list[MonitoringEvent] = []

        async def handler(event: MonitoringEvent) -> None:
            received.append(event)

        bus.subscribe(handler)
        bus.publish(EventType.ALERT, "async")
        await asyncio.sleep(0.01)

        assert [e.data for e in received] == ["async"]

    async def test_failing_coroutine_subscriber_is_contained(self, bus: EventBus) -> None:
        received: list[MonitoringEvent] = []

        async def broken(event: MonitoringEvent) -> None:
            raise ValueError("async subscriber bug")

        bus.subscribe(broken)
        bus.subscribe(received.append)

        bus.publish(EventType.ALERT, "x")
        await asyncio.sleep(0.01)

        assert len(received) == 1

    async def test_clear_cancels_deliveries_in_flight(self, bus: EventBus) -> None:
        started = asyncio.Event()
        outcome: list[str] = []

        async def slow_handler(event: MonitoringEvent) -> None:
            started.set()
            try:
                await asyncio.sleep(10)
                outcome.append("finished")
            except asyncio.CancelledError:
                outcome.append("cancelled")
                raise

        bus.subscribe(slow_handler)
        bus.publish(EventType.ALERT, "x")
        await asyncio.wait_for(started.wait(), timeout=1.0)

        bus.clear()
        await asyncio.sleep(0.01)

        assert outcome == ["cancelled"]

    def test_coroutine_subscriber_without_loop_is_dropped(self, bus: EventBus) -> None:
        calls: list[MonitoringEvent] = []

        async def handler(event: MonitoringEvent) -> None:
            calls.append(event)

        bus.subscribe(handler)
        bus.publish(EventType.METRICS, "no loop")

        assert calls == []
