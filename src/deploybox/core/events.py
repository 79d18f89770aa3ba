"""In-process fan-out of project events to live subscribers."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from deploybox.models.events import DeployEvent, EventKind

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUEUE_SIZE = 1000


class Broadcaster(Protocol):
    """Publish capability consumed by the orchestrator."""

    def publish(self, project_name: str, kind: EventKind, payload: str) -> None: ...

    def close(self, project_name: str) -> None: ...


class Subscription:
    """Async iterator over the events of one project channel.

    The subscription is registered as soon as it is created, so events published
    between ``EventHub.subscribe`` and the first iteration are not lost.
    """

    def __init__(self, hub: EventHub, project_name: str, max_queue_size: int) -> None:
        self.project_name = project_name
        self._hub = hub
        self._queue: asyncio.Queue[DeployEvent | None] = asyncio.Queue(maxsize=max_queue_size)
        self._closed = False

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> DeployEvent:
        if self._closed:
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is None:
            self._closed = True
            raise StopAsyncIteration
        return event

    def offer(self, event: DeployEvent | None) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._queue.get_nowait()
            self._queue.put_nowait(event)

    def close(self) -> None:
        self._closed = True
        self._hub.unsubscribe(self)


class EventHub:
    """Per-project channels backed by one bounded queue per subscriber.

    Publishing never blocks: when a subscriber falls behind, its oldest queued
    event is dropped to make room.
    """

    def __init__(self, *, max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE) -> None:
        self._max_queue_size = max_queue_size
        self._channels: dict[str, set[Subscription]] = {}

    def subscriber_count(self, project_name: str) -> int:
        return len(self._channels.get(project_name, ()))

    def subscribe(self, project_name: str) -> Subscription:
        subscription = Subscription(self, project_name, self._max_queue_size)
        self._channels.setdefault(project_name, set()).add(subscription)
        logger.debug(
            "Subscriber attached to %s (total: %d)",
            project_name,
            self.subscriber_count(project_name),
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._channels.get(subscription.project_name)
        if subscribers is None:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._channels[subscription.project_name]
        logger.debug("Subscriber detached from %s", subscription.project_name)

    def publish(self, project_name: str, kind: EventKind, payload: str) -> None:
        subscribers = self._channels.get(project_name)
        if not subscribers:
            return
        event = DeployEvent(project_name=project_name, kind=kind, payload=payload)
        for subscription in subscribers:
            subscription.offer(event)

    def close(self, project_name: str) -> None:
        """End every open subscription of ``project_name``."""
        for subscription in self._channels.pop(project_name, set()):
            subscription.offer(None)
