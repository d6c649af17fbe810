"""
Tests for the sensor service CRUD rules.
"""

import asyncio
import json

import pytest

from vessel_telemetry import service as service_module
from vessel_telemetry.errors import (
    BrokerUnavailableError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from vessel_telemetry.models import SensorConfig, SensorKind
from vessel_telemetry.mqtt import BrokerConnection
from vessel_telemetry.service import SensorService
from vessel_telemetry.simulation import GpsSimulator
from vessel_telemetry.simulation import gps as gps_module
from vessel_telemetry.store import ConfigStore, StateStore
from vessel_telemetry.stream import Dispatcher, Subscriber, SubscriberRegistry


GPS_PAYLOAD = {"latitude": 59.9, "longitude": 10.7, "speed": 12.0, "heading": 45.0, "is_running": True}


class Harness:
    def __init__(self, broker, config=None, verify_broker=False):
        self.registry = SubscriberRegistry()
        self.config_store = ConfigStore(SensorKind.GPS, config)
        self.state_store = StateStore(SensorKind.GPS)
        self.connection = BrokerConnection(SensorKind.GPS, self.config_store, client_factory=broker.factory)
        self.dispatcher = Dispatcher(
            self.registry,
            {SensorKind.GPS: self.config_store},
            {SensorKind.GPS: self.connection},
        )
        self.service = SensorService(
            SensorKind.GPS,
            self.config_store,
            self.state_store,
            self.connection,
            self.dispatcher,
            verify_broker=verify_broker,
        )
        self.reconnects = 0
        self.connection.request_reconnect = self._count_reconnect

    def _count_reconnect(self):
        self.reconnects += 1

    def subscribe(self):
        subscriber = Subscriber()
        self.registry.add(subscriber)
        return subscriber


@pytest.fixture(autouse=True)
def fixed_variation(monkeypatch):
    monkeypatch.setattr(service_module, "magnetic_variation", lambda lat, lon, moment: 3.25)


@pytest.mark.asyncio
async def test_create_requires_config(broker):
    harness = Harness(broker)

    with pytest.raises(PreconditionError):
        await harness.service.create_state(GPS_PAYLOAD)

    assert not await harness.state_store.exists()


@pytest.mark.asyncio
async def test_create_reports_missing_fields(broker):
    harness = Harness(broker, SensorConfig(host="broker.local", interval=100))

    with pytest.raises(PreconditionError, match="port"):
        await harness.service.create_state(GPS_PAYLOAD)

    assert not await harness.state_store.exists()


@pytest.mark.asyncio
async def test_create_computes_variation(broker, complete_config):
    harness = Harness(broker, complete_config)

    data = await harness.service.create_state(GPS_PAYLOAD)

    assert data["variation"] == 3.25
    assert data["is_running"] is True
    assert data["latitude"] == 59.9
    assert (await harness.service.get_state()) == data


@pytest.mark.asyncio
async def test_create_twice_conflicts(broker, complete_config):
    harness = Harness(broker, complete_config)
    await harness.service.create_state(GPS_PAYLOAD)

    with pytest.raises(PreconditionError):
        await harness.service.create_state(GPS_PAYLOAD)


@pytest.mark.asyncio
async def test_invalid_create_leaves_nothing(broker, complete_config):
    harness = Harness(broker, complete_config)

    with pytest.raises(ValidationError):
        await harness.service.create_state({**GPS_PAYLOAD, "latitude": 91})

    assert not await harness.state_store.exists()


@pytest.mark.asyncio
async def test_update_missing_instance(broker, complete_config):
    harness = Harness(broker, complete_config)

    with pytest.raises(NotFoundError):
        await harness.service.update_state({"speed": 5})


@pytest.mark.asyncio
async def test_start_requires_complete_config(broker):
    harness = Harness(broker, SensorConfig(host="broker.local"))

    with pytest.raises(PreconditionError):
        await harness.service.update_state({"is_running": True})


@pytest.mark.asyncio
async def test_update_applies_and_refreshes_timestamp(broker, complete_config):
    harness = Harness(broker, complete_config)
    created = await harness.service.create_state(GPS_PAYLOAD)

    updated = await harness.service.update_state({"speed": 20, "is_running": False})

    assert updated["speed"] == 20.0
    assert updated["is_running"] is False
    assert updated["heading"] == 45.0
    assert updated["last_update"] >= created["last_update"]


@pytest.mark.asyncio
async def test_invalid_update_leaves_state(broker, complete_config):
    harness = Harness(broker, complete_config)
    created = await harness.service.create_state(GPS_PAYLOAD)

    with pytest.raises(ValidationError):
        await harness.service.update_state({"speed": 10, "heading": 400})

    assert await harness.service.get_state() == created


@pytest.mark.asyncio
async def test_delete_state_notifies_first(broker, complete_config):
    harness = Harness(broker, complete_config)
    await harness.service.create_state(GPS_PAYLOAD)
    subscriber = harness.subscribe()

    await harness.service.delete_state()

    assert json.loads(await subscriber.receive()) == {
        "type": "gps_delete",
        "data": {"reason": "sensor_deleted"},
    }
    with pytest.raises(NotFoundError):
        await harness.service.get_state()
    with pytest.raises(NotFoundError):
        await harness.service.delete_state()


@pytest.mark.asyncio
async def test_config_hides_password(broker):
    harness = Harness(broker)

    data = await harness.service.update_config({"host": "broker.local", "username": "u", "password": "p"})

    assert "password" not in data
    assert "password" not in await harness.service.get_config()
    assert (await harness.config_store.snapshot()).password == "p"


@pytest.mark.asyncio
async def test_connection_change_sends_one_reconnect(broker, complete_config):
    harness = Harness(broker, complete_config)

    await harness.service.update_config({"host": "other.local", "port": 1884})
    assert harness.reconnects == 1

    await harness.service.update_config({"interval": 500, "topics": ["a"]})
    assert harness.reconnects == 1

    # Same value again is not a change
    await harness.service.replace_config({"host": "other.local"})
    assert harness.reconnects == 1


@pytest.mark.asyncio
async def test_replace_config_merges(broker, complete_config):
    harness = Harness(broker, complete_config)

    data = await harness.service.replace_config({"interval": 250})

    assert data["interval"] == 250
    assert data["host"] == "broker.local"
    assert data["topics"] == ["vessel/gps"]


@pytest.mark.asyncio
async def test_verify_broker_rejects_unreachable(broker, complete_config):
    harness = Harness(broker, complete_config, verify_broker=True)
    broker.fail_connect = True

    with pytest.raises(BrokerUnavailableError):
        await harness.service.update_config({"host": "unreachable.local"})

    assert (await harness.config_store.snapshot()).host == "broker.local"
    assert harness.reconnects == 0


@pytest.mark.asyncio
async def test_verify_broker_skips_non_connection_changes(broker, complete_config):
    harness = Harness(broker, complete_config, verify_broker=True)
    broker.fail_connect = True

    data = await harness.service.update_config({"interval": 100})

    assert data["interval"] == 100
    assert broker.clients == []


@pytest.mark.asyncio
async def test_delete_config_clears_everything(broker, complete_config):
    harness = Harness(broker, complete_config)
    await harness.service.create_state(GPS_PAYLOAD)
    subscriber = harness.subscribe()

    await harness.service.delete_config()

    assert json.loads(await subscriber.receive()) == {
        "type": "gps_delete",
        "data": {"reason": "config_deleted"},
    }
    assert (await harness.config_store.snapshot()) == SensorConfig()
    assert harness.reconnects == 1
    with pytest.raises(NotFoundError):
        await harness.service.get_state()
    with pytest.raises(PreconditionError):
        await harness.service.create_state(GPS_PAYLOAD)


@pytest.mark.asyncio
async def test_delete_notice_is_the_last_message(broker, complete_config, monkeypatch):
    monkeypatch.setattr(gps_module, "magnetic_variation", lambda lat, lon, moment: 3.25)
    harness = Harness(broker, complete_config)
    simulator = GpsSimulator(harness.config_store, harness.state_store, harness.dispatcher.notify)
    await harness.service.create_state(GPS_PAYLOAD)
    subscriber = harness.subscribe()

    await simulator.tick(1.0)
    await harness.service.delete_config()
    assert await simulator.tick(1.0) is None

    types = [json.loads(await subscriber.receive())["type"] for _ in range(2)]
    assert types == ["gps_update", "gps_delete"]
    subscriber.close()
    assert await subscriber.receive() is None


@pytest.mark.asyncio
async def test_concurrent_deletes_notify_once(broker, complete_config):
    harness = Harness(broker, complete_config)
    await harness.service.create_state(GPS_PAYLOAD)
    subscriber = harness.subscribe()

    results = await asyncio.gather(
        harness.service.delete_state(),
        harness.service.delete_state(),
        return_exceptions=True,
    )

    assert sum(isinstance(r, NotFoundError) for r in results) == 1
    assert json.loads(await subscriber.receive())["type"] == "gps_delete"
    subscriber.close()
    assert await subscriber.receive() is None
