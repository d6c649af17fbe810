"""
Sensor service: the CRUD operations behind the REST API.

One SensorService per kind. It validates input, enforces the cross-store
rules (a sensor cannot be created or started without a complete broker
configuration) and triggers side effects: reconnect commands when
connection parameters change, and terminal notifications before state is
cleared.

Cross-store checks snapshot one store, release its lock, then touch the
other; no method ever holds both locks.
"""

from typing import Any

from .errors import NotFoundError, PreconditionError
from .logging import get_sensor_logger
from .models.sensor import STATE_TYPES, GpsState, SensorConfig, SensorKind, SensorState, utcnow
from .mqtt.client import BrokerConnection
from .store import ConfigStore, StateStore
from .stream.dispatcher import Dispatcher
from .utils.geomag import magnetic_variation


class SensorService:
    """CRUD operations for one sensor kind."""

    def __init__(
        self,
        kind: SensorKind,
        config_store: ConfigStore,
        state_store: StateStore,
        connection: BrokerConnection,
        dispatcher: Dispatcher,
        verify_broker: bool = False,
    ):
        """
        Args:
            kind: Sensor kind served
            config_store: Broker configuration store
            state_store: Sensor state store
            connection: Broker connection manager for this kind
            dispatcher: Used for terminal delete notifications
            verify_broker: Test-connect proposed broker settings before accepting them
        """
        self.kind = kind
        self.config_store = config_store
        self.state_store = state_store
        self.connection = connection
        self.dispatcher = dispatcher
        self.verify_broker = verify_broker
        self.logger = get_sensor_logger("service", kind.value)
        self.state_type: type[SensorState] = STATE_TYPES[kind]

    async def _require_complete_config(self, action: str) -> None:
        config = await self.config_store.snapshot()
        missing = config.missing_fields()
        if missing:
            raise PreconditionError(
                f"Cannot {action} {self.kind.value}: configuration is incomplete "
                f"(missing {', '.join(missing)})."
            )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    async def get_state(self) -> dict[str, Any]:
        state = await self.state_store.get()
        if state is None:
            raise NotFoundError(f"{self.kind.value} instance not found")
        return state.to_dict()

    async def create_state(self, payload: Any) -> dict[str, Any]:
        """
        Create the sensor instance.

        Raises:
            ValidationError: Invalid payload
            PreconditionError: Incomplete config or instance already exists
        """
        fields = self.state_type.parse_create(payload)
        await self._require_complete_config("create")

        now = utcnow()
        state = self.state_type(**fields, last_update=now)
        if isinstance(state, GpsState):
            state.variation = magnetic_variation(state.latitude, state.longitude, now)

        created = await self.state_store.create(state)
        self.logger.info(f"Instance created (running={created.is_running})")
        return created.to_dict()

    async def update_state(self, payload: Any) -> dict[str, Any]:
        """
        Apply a partial update.

        Raises:
            ValidationError: Invalid payload
            PreconditionError: Starting with incomplete config
            NotFoundError: No instance
        """
        changes = self.state_type.parse_patch(payload)
        if changes.get("is_running") is True:
            await self._require_complete_config("start")

        now = utcnow()
        updated = await self.state_store.update(lambda state: state.apply(changes, now))
        return updated.to_dict()

    async def delete_state(self) -> None:
        """
        Delete the instance, notifying subscribers first.

        Raises:
            NotFoundError: No instance
        """
        await self.state_store.delete(
            before=lambda: self.dispatcher.announce_delete(self.kind, "sensor_deleted")
        )
        self.logger.info("Instance deleted")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    async def get_config(self) -> dict[str, Any]:
        config = await self.config_store.snapshot()
        return config.to_dict()

    async def update_config(self, payload: Any) -> dict[str, Any]:
        """
        Merge present fields into the configuration.

        A change to host, port or credentials sends exactly one reconnect
        command. With verify_broker set, the proposed broker is test-connected
        first and the change rejected if that fails.

        Raises:
            ValidationError: Invalid payload
            BrokerUnavailableError: Verification failed
        """
        changes = SensorConfig.parse_patch(payload)

        if self.verify_broker and any(name in changes for name in SensorConfig.CONNECTION_FIELDS):
            proposed = (await self.config_store.snapshot()).merged(changes)
            if proposed.has_broker():
                await self.connection.probe(proposed)

        previous, current = await self.config_store.patch(changes)
        if previous.connection_key() != current.connection_key():
            self.connection.request_reconnect()

        self.logger.info(f"Config updated: {', '.join(sorted(changes)) or 'no changes'}")
        return current.to_dict()

    async def replace_config(self, payload: Any) -> dict[str, Any]:
        """
        Submit configuration (POST).

        Shares the merge semantics of update_config: absent fields keep their
        current value rather than being cleared.
        """
        return await self.update_config(payload)

    async def delete_config(self) -> None:
        """Reset configuration to empty; this also clears the sensor instance."""
        await self.state_store.clear(
            before=lambda: self.dispatcher.announce_delete(self.kind, "config_deleted")
        )
        await self.config_store.reset()
        self.connection.request_reconnect()
        self.logger.info("Config deleted")

    def request_reconnect(self) -> None:
        self.connection.request_reconnect()
