"""
Fan-out of sensor updates to socket subscribers and the MQTT broker.

Simulators call notify() with a snapshot once the state lock is released.
The update is serialized exactly once; subscribers get it immediately,
in the order the state changed, and the same string is handed to a
per-kind publisher task for the configured topics.

The two transports are independent. The publisher holds at most one
pending message per kind, so a slow broker skips stale updates instead of
delaying subscribers or growing a backlog.
"""

import asyncio
import json
from contextlib import suppress
from typing import Any

from ..logging import get_logger
from ..models.sensor import SensorKind
from ..mqtt.client import BrokerConnection
from ..store import ConfigStore
from .registry import SubscriberRegistry


logger = get_logger("stream.dispatcher")


def build_envelope(message_type: str, data: Any = None) -> str:
    """Serialize a tagged {type, data} envelope."""
    return json.dumps({"type": message_type, "data": data})


class Dispatcher:
    """Routes state-change notifications to subscribers and broker topics."""

    def __init__(
        self,
        registry: SubscriberRegistry,
        config_stores: dict[SensorKind, ConfigStore],
        connections: dict[SensorKind, BrokerConnection],
    ):
        self.registry = registry
        self.config_stores = config_stores
        self.connections = connections

        # Newest unpublished update per kind
        self._pending: dict[SensorKind, asyncio.Queue[str]] = {
            kind: asyncio.Queue(maxsize=1) for kind in config_stores
        }
        self._tasks: list[asyncio.Task] = []

    def notify(self, kind: SensorKind, snapshot: dict[str, Any]) -> str:
        """
        Dispatch a state snapshot. Never blocks.

        Returns:
            The serialized envelope
        """
        message = build_envelope(kind.update_type, snapshot)
        delivered = self.registry.broadcast(message)

        if self._discard_pending(kind):
            logger.debug(f"{kind.update_type}: broker busy, replaced unpublished update")
        self._pending[kind].put_nowait(message)

        logger.debug(f"{kind.update_type}: {delivered} subscriber(s)")
        return message

    def announce_delete(self, kind: SensorKind, reason: str) -> int:
        """
        Tell subscribers that a sensor's updates have stopped.

        Any update not yet published for the kind is dropped, so nothing
        about the deleted instance reaches the broker afterwards.

        Returns:
            Number of subscribers notified
        """
        self._discard_pending(kind)
        message = build_envelope(kind.delete_type, {"reason": reason})
        delivered = self.registry.broadcast(message)
        logger.info(f"{kind.delete_type} ({reason}) sent to {delivered} subscriber(s)")
        return delivered

    def _discard_pending(self, kind: SensorKind) -> bool:
        try:
            self._pending[kind].get_nowait()
        except asyncio.QueueEmpty:
            return False
        return True

    async def publish(self, kind: SensorKind, message: str) -> int:
        """
        Publish a serialized update to the kind's configured topics.

        Returns:
            Number of topics that accepted it
        """
        topics = await self.config_stores[kind].topics()
        if not topics:
            return 0
        published = await self.connections[kind].publish(topics, message)
        logger.debug(f"{kind.update_type}: {published}/{len(topics)} topic(s)")
        return published

    async def _publisher(self, kind: SensorKind) -> None:
        queue = self._pending[kind]
        while True:
            message = await queue.get()
            try:
                await self.publish(kind, message)
            except Exception as e:
                logger.error(f"Failed to publish {kind.update_type}: {e}")

    def start(self) -> None:
        """Start one broker publisher per sensor kind."""
        if self._tasks:
            return
        for kind in self._pending:
            self._tasks.append(
                asyncio.create_task(self._publisher(kind), name=f"publish-{kind.value}")
            )

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()
