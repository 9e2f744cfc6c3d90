"""The keyed refresh hub used by mutations."""

import asyncio

from redcloud.services import realtime
from redcloud.services.realtime import REALTIME_KEYS, RealtimeHub


def test_keys():
    assert REALTIME_KEYS.all() == {"/guestbook", "/profile", "/tasks"}


def test_publish_reaches_only_matching_subscribers():
    hub = RealtimeHub()

    async def scenario():
        tasks = hub.subscribe("/tasks")
        guestbook = hub.subscribe("/guestbook")
        assert hub.publish("/tasks") == 1
        event = await asyncio.wait_for(tasks.next_event(), timeout=1)
        assert event == {"type": "refresh", "key": "/tasks"}
        assert guestbook.queue.empty()

        tasks.close()
        assert hub.subscriber_count("/tasks") == 0
        assert hub.publish("/tasks") == 0

    asyncio.run(scenario())


def test_publish_from_a_worker_thread():
    hub = RealtimeHub()

    async def scenario():
        subscription = hub.subscribe("/profile")
        delivered = await asyncio.to_thread(hub.publish, "/profile")
        assert delivered == 1
        assert await asyncio.wait_for(subscription.next_event(), timeout=1) == {"type": "refresh", "key": "/profile"}

    asyncio.run(scenario())


def test_subscribers_on_closed_loops_are_dropped():
    hub = RealtimeHub()

    async def subscribe():
        return hub.subscribe("/tasks")

    asyncio.run(subscribe())
    assert hub.subscriber_count("/tasks") == 1
    assert hub.publish("/tasks") == 0
    assert hub.subscriber_count("/tasks") == 0


def test_trigger_swallows_publish_failures(monkeypatch, caplog):
    def boom(key):
        raise RuntimeError("hub down")

    monkeypatch.setattr(realtime.hub, "publish", boom)
    realtime.trigger_realtime_update("/tasks")
    assert any(record.getMessage() == "realtime.publish_failed" for record in caplog.records)
