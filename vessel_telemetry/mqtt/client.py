"""
Broker connection manager using aiomqtt.

One BrokerConnection per sensor kind. It owns a single outbound MQTT
session and moves through Disconnected -> Connecting -> Connected. A
reconnect command (config change, explicit API request) or the death of
the keep-alive task sends it back to Disconnected, and the next tick tries
again with whatever configuration is current by then.

Connection failures are never fatal: publishing is simply skipped until a
session is re-established.
"""

import asyncio
import uuid
from collections.abc import Callable
from contextlib import suppress
from enum import Enum

import aiomqtt

from ..const import DEFAULT_CLIENT_ID_PREFIX, DEFAULT_INTERVAL_MS, DEFAULT_MQTT_KEEPALIVE, DEFAULT_QOS
from ..errors import BrokerUnavailableError
from ..logging import get_sensor_logger
from ..models.sensor import SensorConfig, SensorKind
from ..store import ConfigStore


class ConnectionState(Enum):
    """Broker session state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class BrokerCommand(Enum):
    """Commands accepted by the manager loop."""

    RECONNECT = "reconnect"
    STOP = "stop"
    LOST = "lost"  # posted by the keep-alive task


# (config, identifier, keepalive seconds) -> unopened client
ClientFactory = Callable[[SensorConfig, str, int], aiomqtt.Client]


def create_client(config: SensorConfig, identifier: str, keepalive: int) -> aiomqtt.Client:
    """Build an aiomqtt client for a broker configuration."""
    return aiomqtt.Client(
        hostname=config.host,
        port=config.port,
        username=config.username,
        password=config.password,
        identifier=identifier,
        keepalive=keepalive,
    )


class BrokerConnection:
    """
    Lifecycle manager for one outbound broker session.

    Commands travel over a queue so the loop can choose between "tick" and
    "reconnect" deterministically; nothing outside the loop touches the
    client or the keep-alive task.
    """

    def __init__(
        self,
        kind: SensorKind,
        config_store: ConfigStore,
        client_id_prefix: str = DEFAULT_CLIENT_ID_PREFIX,
        keepalive: int = DEFAULT_MQTT_KEEPALIVE,
        client_factory: ClientFactory = create_client,
    ):
        """
        Initialize connection manager.

        Args:
            kind: Sensor kind this session publishes for
            config_store: Source of host/port/credentials and tick interval
            client_id_prefix: Prefix of the MQTT client identifier
            keepalive: MQTT keepalive in seconds
            client_factory: Builds the client; replaced in tests
        """
        self.kind = kind
        self.config_store = config_store
        self.keepalive = keepalive
        self.logger = get_sensor_logger("mqtt.client", kind.value)
        self._client_factory = client_factory
        self._client_id = f"{client_id_prefix}_{kind.value}_{uuid.uuid4().hex[:8]}"

        self._state = ConnectionState.DISCONNECTED
        self._client: aiomqtt.Client | None = None
        self._keepalive_task: asyncio.Task | None = None
        self._generation = 0  # bumped on every successful connect

        self._commands: asyncio.Queue[tuple[BrokerCommand, int]] = asyncio.Queue()
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def generation(self) -> int:
        """Number of sessions established so far."""
        return self._generation

    @property
    def client_id(self) -> str:
        return self._client_id

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def request_reconnect(self) -> None:
        """Drop the current session and reconnect with the current config."""
        self._commands.put_nowait((BrokerCommand.RECONNECT, self._generation))

    async def start(self) -> None:
        """Start the manager loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name=f"broker-{self.kind.value}")

    async def stop(self) -> None:
        """Stop the loop and close the session."""
        if self._task is not None and not self._task.done():
            self._commands.put_nowait((BrokerCommand.STOP, self._generation))
            try:
                await asyncio.wait_for(self._task, timeout=5.0)
            except asyncio.TimeoutError:
                self._task.cancel()
                with suppress(asyncio.CancelledError):
                    await self._task
        self._task = None
        await self._disconnect("stopped")

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _tick_seconds(self) -> float:
        interval = await self.config_store.interval_ms()
        return (interval or DEFAULT_INTERVAL_MS) / 1000.0

    def _coalesce_reconnects(self) -> None:
        """Fold queued duplicate reconnect requests into the one being handled."""
        pending: list[tuple[BrokerCommand, int]] = []
        while not self._commands.empty():
            item = self._commands.get_nowait()
            if item[0] is not BrokerCommand.RECONNECT:
                pending.append(item)
        for item in pending:
            self._commands.put_nowait(item)

    async def handle(self, command: BrokerCommand | None, generation: int = 0) -> bool:
        """
        Process one loop iteration.

        Args:
            command: Command received this tick, or None on timeout
            generation: Session generation the command refers to

        Returns:
            False when the loop should exit
        """
        if command is BrokerCommand.STOP:
            return False

        if command is BrokerCommand.RECONNECT:
            self._coalesce_reconnects()
            self.logger.info("Reconnect requested")
            await self._disconnect("reconnect requested")
        elif command is BrokerCommand.LOST:
            if generation == self._generation and self._state is ConnectionState.CONNECTED:
                await self._disconnect("connection lost")

        if self._state is ConnectionState.DISCONNECTED:
            await self._connect()
        return True

    async def run(self) -> None:
        """Command/tick loop. Returns after a STOP command."""
        self.logger.debug(f"Connection manager started ({self._client_id})")

        running = True
        first = True
        while running:
            try:
                # First pass connects straight away instead of waiting a tick
                timeout = 0.0 if first else await self._tick_seconds()
                first = False
                try:
                    command, generation = await asyncio.wait_for(self._commands.get(), timeout)
                except asyncio.TimeoutError:
                    command, generation = None, 0
                running = await self.handle(command, generation)
            except Exception as e:
                self.logger.error(f"Connection manager error: {e}")
                await self._disconnect("manager error")
                await asyncio.sleep(1.0)

        self.logger.debug("Connection manager exited")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _connect(self) -> None:
        """Disconnected -> Connecting -> Connected, or back to Disconnected."""
        # Copy under the store lock, connect without it
        config = await self.config_store.snapshot()
        if not config.has_broker():
            self.logger.debug("Broker not configured, staying disconnected")
            return

        self._state = ConnectionState.CONNECTING
        self.logger.debug(f"Connecting to {config.host}:{config.port}")

        client = self._client_factory(config, self._client_id, self.keepalive)
        try:
            await client.__aenter__()
        except Exception as e:
            self._state = ConnectionState.DISCONNECTED
            self.logger.warning(f"Failed to connect to {config.host}:{config.port}: {e}")
            return

        self._client = client
        self._generation += 1
        self._keepalive_task = asyncio.create_task(
            self._keepalive(client, self._generation),
            name=f"broker-{self.kind.value}-keepalive-{self._generation}",
        )
        self._state = ConnectionState.CONNECTED
        self.logger.info(f"Connected to MQTT broker at {config.host}:{config.port}")

    async def _keepalive(self, client: aiomqtt.Client, generation: int) -> None:
        """Watch the session; report LOST when the transport dies."""
        try:
            async for _message in client.messages:
                pass
        except aiomqtt.MqttError as e:
            self.logger.warning(f"Broker connection lost: {e}")
        except Exception as e:
            self.logger.error(f"Keep-alive watcher failed: {e}")
        self._commands.put_nowait((BrokerCommand.LOST, generation))

    async def _disconnect(self, reason: str) -> None:
        """* -> Disconnected. Cancels the keep-alive before closing the client."""
        task, self._keepalive_task = self._keepalive_task, None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

        client, self._client = self._client, None
        was_connected = self._state is ConnectionState.CONNECTED
        self._state = ConnectionState.DISCONNECTED

        if client is not None:
            try:
                await client.__aexit__(None, None, None)
            except Exception as e:
                self.logger.debug(f"Error while closing session: {e}")

        if was_connected:
            self.logger.info(f"Disconnected from MQTT broker ({reason})")

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def publish(self, topics: list[str], payload: str) -> int:
        """
        Publish a pre-serialized payload to every topic.

        Failures are logged per topic and do not stop the remaining topics.
        Nothing is queued for retry: the next tick publishes a fresh snapshot.

        Returns:
            Number of topics published to
        """
        client = self._client
        if client is None or self._state is not ConnectionState.CONNECTED:
            self.logger.debug(f"Not connected, skipping publish to {len(topics)} topic(s)")
            return 0

        published = 0
        for topic in topics:
            try:
                await client.publish(topic, payload, qos=DEFAULT_QOS)
                published += 1
            except Exception as e:
                self.logger.error(f"Failed to publish to '{topic}': {e}")
        return published

    async def probe(self, config: SensorConfig) -> None:
        """
        Test-connect with a proposed configuration.

        Raises:
            BrokerUnavailableError: If the broker cannot be reached
        """
        client = self._client_factory(config, f"{self._client_id}_probe", self.keepalive)
        try:
            await client.__aenter__()
        except Exception as e:
            raise BrokerUnavailableError(
                f"Cannot connect to MQTT broker at {config.host}:{config.port}: {e}"
            ) from e

        try:
            await client.__aexit__(None, None, None)
        except Exception as e:
            self.logger.debug(f"Error closing probe session: {e}")
