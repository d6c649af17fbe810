"""
Pytest configuration and fixtures.

The MQTT broker is replaced by FakeBroker, whose factory matches the
signature BrokerConnection expects from aiomqtt.Client construction.
"""

import asyncio
from collections.abc import Callable
from typing import Any

import aiomqtt
import pytest

from vessel_telemetry.models.sensor import SensorConfig


class FakeClient:
    """Stand-in for an aiomqtt.Client session."""

    def __init__(self, broker: "FakeBroker", config: SensorConfig, identifier: str, keepalive: int):
        self.broker = broker
        self.config = config
        self.identifier = identifier
        self.keepalive = keepalive
        self.opened = False
        self.closed = False
        self._dropped = asyncio.Event()

    async def __aenter__(self) -> "FakeClient":
        if self.broker.fail_connect:
            raise aiomqtt.MqttError("Connection refused")
        self.opened = True
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.closed = True

    async def publish(self, topic: str, payload: str, qos: int = 0) -> None:
        if self.broker.publish_delay:
            await asyncio.sleep(self.broker.publish_delay)
        if topic in self.broker.fail_topics:
            raise aiomqtt.MqttError(f"Publish to {topic} failed")
        self.broker.published.append((topic, payload, qos))

    @property
    def messages(self):
        return self._stream()

    async def _stream(self):
        await self._dropped.wait()
        raise aiomqtt.MqttError("Connection lost")
        yield  # makes this an async generator

    def drop(self) -> None:
        """Simulate the transport dying."""
        self._dropped.set()


class FakeBroker:
    """Records sessions and publishes made through FakeClient."""

    def __init__(self):
        self.clients: list[FakeClient] = []
        self.published: list[tuple[str, str, int]] = []
        self.fail_connect = False
        self.fail_topics: set[str] = set()
        # Seconds each publish waits for its acknowledgement
        self.publish_delay = 0.0

    def factory(self, config: SensorConfig, identifier: str, keepalive: int) -> FakeClient:
        client = FakeClient(self, config, identifier, keepalive)
        self.clients.append(client)
        return client

    @property
    def open_clients(self) -> list[FakeClient]:
        return [c for c in self.clients if c.opened and not c.closed]


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def complete_config() -> SensorConfig:
    return SensorConfig(host="broker.local", port=1883, interval=50, topics=["vessel/gps"])


async def _eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def eventually() -> Callable[..., Any]:
    """Await a condition, polling the event loop."""
    return _eventually
