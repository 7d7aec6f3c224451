"""In-process event bus with typed topics."""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field

from consistency_tracker.domain.events import EngineEvent, EventTopic

_logger = logging.getLogger(__name__)

_CLOSED = object()


@dataclass(eq=False)
class Subscription:
    """Async stream of events for one topic."""

    topic: EventTopic
    bus: "EventBus"
    _queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    closed: bool = False

    def deliver(self, event: EngineEvent) -> None:
        """Queue an event for the consumer."""
        if not self.closed:
            self._queue.put_nowait(event)

    def close(self) -> None:
        """End the stream and detach from the bus."""
        if self.closed:
            return
        self.closed = True
        self.bus.unsubscribe(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[EngineEvent]:
        return self

    async def __anext__(self) -> EngineEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


@dataclass(eq=False)
class EventBus:
    """Fans typed events out to stream subscriptions and listeners."""

    _subscriptions: dict[EventTopic, list[Subscription]] = field(default_factory=dict)
    _listeners: dict[EventTopic, list[Callable[[EngineEvent], None]]] = field(
        default_factory=dict
    )

    def subscribe(self, topic: EventTopic) -> Subscription:
        """Return a new stream of events published on the topic."""
        subscription = Subscription(topic=topic, bus=self)
        self._subscriptions.setdefault(topic, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Detach a stream subscription."""
        subscriptions = self._subscriptions.get(subscription.topic, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)

    def listen(
        self, topic: EventTopic, callback: Callable[[EngineEvent], None]
    ) -> Callable[[], None]:
        """Register a synchronous listener and return a function removing it."""
        listeners = self._listeners.setdefault(topic, [])
        listeners.append(callback)

        def remove() -> None:
            if callback in listeners:
                listeners.remove(callback)

        return remove

    def publish(self, event: EngineEvent) -> None:
        """Deliver an event to everything registered on its topic."""
        for subscription in list(self._subscriptions.get(event.topic, [])):
            subscription.deliver(event)
        for callback in list(self._listeners.get(event.topic, [])):
            try:
                callback(event)
            except Exception:
                _logger.exception("Event listener failed for %s", event.topic)
