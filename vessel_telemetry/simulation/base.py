"""
Base simulator interface for the periodic state-update engine.

Each simulator owns the tick loop for one sensor kind: it re-reads the
configured interval before every sleep, advances the stored state by one
physical step while the sensor is running, and hands a snapshot of the
result to the dispatcher once the state lock has been released.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from typing import Any

from ..const import DEFAULT_INTERVAL_MS
from ..models.sensor import SensorKind, SensorState, utcnow
from ..store import ConfigStore, StateStore
from ..logging import get_sensor_logger


# Receives (kind, snapshot dict); must not block
Notify = Callable[[SensorKind, dict[str, Any]], None]


class Simulator(ABC):
    """
    Abstract base class for sensor simulators.

    Subclasses implement step(), which mutates a private working copy of
    the state. The store swaps it in atomically.
    """

    KIND: SensorKind

    def __init__(
        self,
        config_store: ConfigStore,
        state_store: StateStore,
        notify: Notify,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize simulator.

        Args:
            config_store: Source of the tick interval
            state_store: State advanced by each tick
            notify: Called with a snapshot after every successful step
            clock: Time source for last_update and wall-clock driven motion
        """
        self.config_store = config_store
        self.state_store = state_store
        self.notify = notify
        self.clock = clock
        self.logger = get_sensor_logger("simulation", self.KIND.value)

        self._ticks = 0

    @property
    def name(self) -> str:
        return self.KIND.value

    @property
    def ticks(self) -> int:
        """Number of steps applied so far."""
        return self._ticks

    async def interval_ms(self) -> int:
        """Configured cadence, or the default if unset."""
        interval = await self.config_store.interval_ms()
        return interval if interval else DEFAULT_INTERVAL_MS

    @abstractmethod
    def step(self, state: SensorState, dt: float, now: datetime) -> None:
        """
        Advance state by one time step, in place.

        Args:
            state: Working copy to mutate
            dt: Time step in seconds
            now: Timestamp of this tick
        """

    async def tick(self, dt: float) -> dict[str, Any] | None:
        """
        Run one step and notify.

        Returns:
            Snapshot that was dispatched, or None if the sensor is absent or stopped
        """
        now = self.clock()
        state = await self.state_store.advance(lambda s: self.step(s, dt, now))
        if state is None:
            return None

        self._ticks += 1
        snapshot = state.to_dict()
        # Lock already released by advance()
        self.notify(self.KIND, snapshot)
        return snapshot

    async def safe_tick(self, dt: float) -> dict[str, Any] | None:
        """Run one step, logging instead of raising."""
        try:
            return await self.tick(dt)
        except Exception as e:
            self.logger.error(f"Step failed: {e}")
            return None

    async def run(self) -> None:
        """Tick forever. Cancel the task to stop."""
        self.logger.info(f"Simulator started (interval {await self.interval_ms()} ms)")

        while True:
            interval = await self.interval_ms()
            await asyncio.sleep(interval / 1000.0)
            await self.safe_tick(interval / 1000.0)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name}, ticks={self._ticks})"
