"""Server-sent event fan-out for committed page mutations.

The broadcaster is a registry of subscriber queues owned by the app. A
broadcast serialises the payload once and enqueues the framed message on
every current subscriber; a subscriber that cannot take it is skipped.
Delivery is best effort and at most once, with no replay for clients that
were not connected. Clients treat events as invalidation hints and re-pull
through the sync endpoint.
"""

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

from .logging_config import get_logger

logger = get_logger("events")

HEARTBEAT = ":hb\n\n"


def format_event(payload: Any) -> str:
    """Frame a payload as one SSE ``data:`` message."""
    return f"data: {json.dumps(payload, default=str)}\n\n"


class Subscription:
    """One connected event-stream client."""

    def __init__(self, maxsize: int):
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionError("subscription closed")
        self.queue.put_nowait(message)


class EventBroadcaster:
    """Registry of connected subscribers.

    Args:
        queue_size: Messages buffered per subscriber; overflow is dropped.
    """

    def __init__(self, queue_size: int = 256):
        self._queue_size = queue_size
        self._subscribers: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        sub = Subscription(self._queue_size)
        self._subscribers.add(sub)
        logger.debug(f"Subscriber added ({len(self._subscribers)} connected)")
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        sub.closed = True
        self._subscribers.discard(sub)
        logger.debug(f"Subscriber removed ({len(self._subscribers)} connected)")

    def broadcast(self, payload: Any) -> int:
        """Send a payload to every subscriber. Returns how many accepted it."""
        message = format_event(payload)
        delivered = 0
        for sub in list(self._subscribers):
            try:
                sub.send(message)
                delivered += 1
            except (asyncio.QueueFull, ConnectionError) as e:
                logger.warning(f"Dropping event for one subscriber: {type(e).__name__}")
        return delivered

    async def stream(
        self, retry_ms: int = 10_000, heartbeat_seconds: float = 25.0
    ) -> AsyncIterator[str]:
        """Yield SSE text for one client until the generator is closed.

        Starts with a retry hint, then relays broadcasts. A comment line is
        sent every ``heartbeat_seconds`` on a fixed schedule, whether or not
        broadcasts arrived in between.
        """
        sub = self.subscribe()
        loop = asyncio.get_running_loop()
        try:
            yield f"retry: {retry_ms}\n\n"
            next_heartbeat = loop.time() + heartbeat_seconds
            while True:
                remaining = next_heartbeat - loop.time()
                if remaining <= 0:
                    yield HEARTBEAT
                    next_heartbeat += heartbeat_seconds
                    continue
                try:
                    message = await asyncio.wait_for(sub.queue.get(), timeout=remaining)
                except asyncio.TimeoutError:
                    continue
                yield message
        finally:
            self.unsubscribe(sub)
