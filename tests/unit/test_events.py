from __future__ import annotations

import asyncio

import pytest

from deploybox.core.events import EventHub
from deploybox.models.events import EventKind


@pytest.mark.asyncio
async def test_subscriber_receives_events_in_order() -> None:
    hub = EventHub()
    subscription = hub.subscribe("demo")

    hub.publish("demo", EventKind.STATUS_UPDATE, "cloning")
    hub.publish("demo", EventKind.LOG_UPDATE, "Cloning...\n")
    hub.publish("other", EventKind.LOG_UPDATE, "ignored\n")
    hub.close("demo")

    received = [(event.kind, event.payload) async for event in subscription]
    assert received == [
        (EventKind.STATUS_UPDATE, "cloning"),
        (EventKind.LOG_UPDATE, "Cloning...\n"),
    ]
    assert hub.subscriber_count("demo") == 0


@pytest.mark.asyncio
async def test_publish_without_subscribers_is_noop() -> None:
    hub = EventHub()
    hub.publish("demo", EventKind.LOG_UPDATE, "nobody listens\n")
    assert hub.subscriber_count("demo") == 0


@pytest.mark.asyncio
async def test_full_queue_drops_oldest_event() -> None:
    hub = EventHub(max_queue_size=2)
    subscription = hub.subscribe("demo")

    for index in range(3):
        hub.publish("demo", EventKind.LOG_UPDATE, f"line {index}\n")

    first = await asyncio.wait_for(anext(subscription), timeout=1)
    second = await asyncio.wait_for(anext(subscription), timeout=1)
    assert [first.payload, second.payload] == ["line 1\n", "line 2\n"]
    subscription.close()


@pytest.mark.asyncio
async def test_close_subscription_detaches() -> None:
    hub = EventHub()
    first = hub.subscribe("demo")
    second = hub.subscribe("demo")
    assert hub.subscriber_count("demo") == 2

    first.close()

    assert hub.subscriber_count("demo") == 1
    second.close()
    assert hub.subscriber_count("demo") == 0
