"""
In-process publish/subscribe fan-out.

Delivery is synchronous and best-effort: every subscriber active at publish time
receives the event, a failing subscriber is logged and skipped, and nothing is
buffered for subscribers that join later.
"""

import asyncio
import inspect
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog

from healthwatch.domain.models import EventType, utc_now

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MonitoringEvent:
    """Envelope handed to every subscriber."""

    type: EventType
    data: Any
    timestamp: datetime = field(default_factory=utc_now)


Subscriber = Callable[[MonitoringEvent], None | Awaitable[None]]


class EventBus:
    """Fan-out of monitoring events to an active set of callbacks."""

    def __init__(self) -> None:
        self._subscribers: dict[int, Subscriber] = {}
        self._next_token = 0
        self._lock = threading.Lock()
        self._pending: set[asyncio.Task[Any]] = set()
        self.logger = logger.bind(component="event_bus")

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Add `callback` to the active set.

        Returns a closure that removes exactly this subscription. The same
        callable may be subscribed twice; each subscription is independent.
        """
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    def publish(self, event_type: EventType, data: Any) -> MonitoringEvent:
        """Deliver one event to every subscriber active right now."""
        event = MonitoringEvent(type=event_type, data=data)

        with self._lock:
            subscribers = list(self._subscribers.values())

        for callback in subscribers:
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    self._schedule(result, event)
            except Exception as e:
                self.logger.exception(
                    "subscriber_notification_failed",
                    event_type=event_type.value,
                    error=str(e),
                )

        return event

    def clear(self) -> None:
        """Drop every subscriber and cancel async deliveries still in flight."""
        with self._lock:
            self._subscribers.clear()
        pending, self._pending = self._pending, set()
        for task in pending:
            task.cancel()

    def _schedule(self, awaitable: Awaitable[None], event: MonitoringEvent) -> None:
        """Run an async subscriber's awaitable on the current loop, logging its failure."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop to drive it
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self.logger.warning("async_subscriber_dropped", event_type=event.type.value)
            return

        task = asyncio.ensure_future(awaitable, loop=loop)
        self._pending.add(task)
        task.add_done_callback(lambda t: self._on_async_done(t, event))

    def _on_async_done(self, task: "asyncio.Task[Any]", event: MonitoringEvent) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error(
                "subscriber_notification_failed",
                event_type=event.type.value,
                error=str(error),
            )
