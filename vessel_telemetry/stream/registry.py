"""
Registry of connected fan-out socket subscribers.

A subscriber is an outbound message queue. Broadcasting never awaits a
slow consumer: messages are offered to each queue and a full queue drops
the message for that subscriber only. Subscribers whose queue is closed
are pruned during the broadcast that finds them.
"""

import asyncio
import itertools

from ..const import SUBSCRIBER_QUEUE_SIZE
from ..logging import get_logger


logger = get_logger("stream.registry")

_ids = itertools.count(1)


class Subscriber:
    """Outbound message queue for one connected viewer."""

    def __init__(self, name: str | None = None, maxsize: int = SUBSCRIBER_QUEUE_SIZE):
        self.id = next(_ids)
        self.name = name or f"subscriber-{self.id}"
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, message: str) -> bool:
        """
        Queue a message without waiting.

        Returns:
            False if the subscriber is closed (and should be pruned)
        """
        if self._closed:
            return False
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Queue full for {self.name}, dropping message")
        return True

    async def receive(self) -> str | None:
        """Next queued message, or None once closed."""
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def close(self) -> None:
        """Mark closed and wake a pending receive()."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            # A full queue means receive() is not blocked; it sees _closed after draining
            pass

    def __repr__(self) -> str:
        return f"Subscriber({self.name}, closed={self._closed})"


class SubscriberRegistry:
    """Set of live subscribers."""

    def __init__(self):
        self._subscribers: dict[int, Subscriber] = {}

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, subscriber: Subscriber) -> bool:
        return subscriber.id in self._subscribers

    def add(self, subscriber: Subscriber) -> None:
        self._subscribers[subscriber.id] = subscriber
        logger.info(f"{subscriber.name} connected ({len(self)} subscribers)")

    def remove(self, subscriber: Subscriber) -> None:
        if self._subscribers.pop(subscriber.id, None) is not None:
            logger.info(f"{subscriber.name} disconnected ({len(self)} subscribers)")

    def broadcast(self, message: str) -> int:
        """
        Offer a message to every subscriber, pruning closed ones.

        Iterates over a snapshot, so subscribers added meanwhile are kept for
        later broadcasts even if they miss this one.

        Returns:
            Number of subscribers the message was offered to
        """
        delivered = 0
        for subscriber in list(self._subscribers.values()):
            if subscriber.offer(message):
                delivered += 1
            else:
                self.remove(subscriber)
        return delivered
