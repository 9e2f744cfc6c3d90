"""Keyed broadcast hub that tells connected browsers to re-fetch a view.

Subscribers are WebSocket handlers living on an event loop. Publishers are
usually synchronous route handlers running in the threadpool, so delivery is
scheduled onto each subscriber's loop with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

logger = logging.getLogger(__name__)


class RealtimeKeys:
    GUESTBOOK = "/guestbook"
    PROFILE = "/profile"
    TASKS = "/tasks"

    @classmethod
    def all(cls) -> frozenset[str]:
        return frozenset({cls.GUESTBOOK, cls.PROFILE, cls.TASKS})


REALTIME_KEYS = RealtimeKeys


class Subscription:
    def __init__(self, hub: "RealtimeHub", key: str, loop: asyncio.AbstractEventLoop) -> None:
        self.hub = hub
        self.key = key
        self.loop = loop
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    def deliver(self, event: dict[str, Any]) -> None:
        self.loop.call_soon_threadsafe(self.queue.put_nowait, event)

    async def next_event(self) -> dict[str, Any]:
        return await self.queue.get()

    def close(self) -> None:
        self.hub.unsubscribe(self)


class RealtimeHub:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[str, set[Subscription]] = {}

    def subscribe(self, key: str) -> Subscription:
        """Register the calling coroutine's loop for refresh events on ``key``."""

        subscription = Subscription(self, key, asyncio.get_running_loop())
        with self._lock:
            self._subscribers.setdefault(key, set()).add(subscription)
        logger.info("realtime.subscribed", extra={"extra_data": {"key": key}})
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscribers.get(subscription.key)
            if not subscribers:
                return
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscribers[subscription.key]

    def subscriber_count(self, key: str) -> int:
        with self._lock:
            return len(self._subscribers.get(key, ()))

    def publish(self, key: str) -> int:
        """Send a refresh event to every subscriber of ``key``. Returns the number notified."""

        with self._lock:
            targets = list(self._subscribers.get(key, ()))
        event = {"type": "refresh", "key": key}
        delivered = 0
        for subscription in targets:
            try:
                subscription.deliver(event)
            except RuntimeError:
                # loop already closed; the socket is gone
                self.unsubscribe(subscription)
                continue
            delivered += 1
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()


hub = RealtimeHub()


def trigger_realtime_update(key: str) -> None:
    """Notify clients viewing ``key``. Failures are logged, never raised."""

    try:
        delivered = hub.publish(key)
    except Exception:
        logger.exception("realtime.publish_failed", extra={"extra_data": {"key": key}})
        return
    logger.info("realtime.published", extra={"extra_data": {"key": key, "subscribers": delivered}})
