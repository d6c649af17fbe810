"""
Shared stores for sensor configuration and sensor state.

Each store owns one lock. Nothing ever holds both, and nothing holds
either across network I/O: callers get copies, never live references.
"""

import asyncio
from collections.abc import Callable
from typing import Any

from .errors import NotFoundError, PreconditionError
from .logging import get_logger
from .models.sensor import SensorConfig, SensorKind, SensorState


logger = get_logger("store")


class ConfigStore:
    """Broker configuration for one sensor kind."""

    def __init__(self, kind: SensorKind, initial: SensorConfig | None = None):
        self.kind = kind
        self._lock = asyncio.Lock()
        self._config = initial.copy() if initial else SensorConfig()

    async def snapshot(self) -> SensorConfig:
        """Return a consistent copy of the current configuration."""
        async with self._lock:
            return self._config.copy()

    async def interval_ms(self) -> int | None:
        async with self._lock:
            return self._config.interval

    async def topics(self) -> list[str]:
        async with self._lock:
            return list(self._config.topics or [])

    async def patch(self, changes: dict[str, Any]) -> tuple[SensorConfig, SensorConfig]:
        """
        Overwrite present fields.

        Returns:
            (previous, current) copies
        """
        async with self._lock:
            previous = self._config
            self._config = previous.merged(changes)
            current = self._config.copy()

        logger.debug(f"{self.kind.value} config patched: {sorted(changes)}")
        return previous, current

    async def reset(self) -> SensorConfig:
        """Reset to all-empty defaults and return the previous value."""
        async with self._lock:
            previous = self._config
            self._config = SensorConfig()
        logger.debug(f"{self.kind.value} config reset")
        return previous


class StateStore:
    """
    Simulated reading for one sensor kind; at most one live instance.

    Mutations run against a private copy that is swapped in only after the
    mutation completes, so readers never observe a half-applied change and a
    failing mutation leaves the stored value untouched.
    """

    def __init__(self, kind: SensorKind):
        self.kind = kind
        self._lock = asyncio.Lock()
        self._state: SensorState | None = None

    async def get(self) -> SensorState | None:
        async with self._lock:
            return self._state.copy() if self._state else None

    async def exists(self) -> bool:
        async with self._lock:
            return self._state is not None

    async def create(self, state: SensorState) -> SensorState:
        """
        Store a new instance.

        Raises:
            PreconditionError: If an instance already exists
        """
        async with self._lock:
            if self._state is not None:
                raise PreconditionError(
                    f"{self.kind.value} instance already exists. Delete it first."
                )
            self._state = state.copy()
            return self._state.copy()

    async def update(self, mutate: Callable[[SensorState], None]) -> SensorState:
        """
        Apply ``mutate`` to the stored instance.

        Raises:
            NotFoundError: If no instance exists
        """
        async with self._lock:
            if self._state is None:
                raise NotFoundError(f"{self.kind.value} instance not found")
            working = self._state.copy()
            mutate(working)
            self._state = working
            return working.copy()

    async def advance(self, step: Callable[[SensorState], None]) -> SensorState | None:
        """
        Apply one simulation step if an instance exists and is running.

        Returns:
            Snapshot after the step, or None if nothing ran
        """
        async with self._lock:
            if self._state is None or not self._state.is_running:
                return None
            working = self._state.copy()
            step(working)
            self._state = working
            return working.copy()

    async def delete(self, before: Callable[[], Any] | None = None) -> SensorState:
        """
        Remove the instance.

        Args:
            before: Called under the lock once the instance is known to
                exist, just before it is removed; must not block

        Raises:
            NotFoundError: If no instance exists
        """
        async with self._lock:
            if self._state is None:
                raise NotFoundError(f"{self.kind.value} instance not found")
            if before is not None:
                before()
            previous, self._state = self._state, None
            return previous

    async def clear(self, before: Callable[[], Any] | None = None) -> bool:
        """
        Remove the instance if present.

        Args:
            before: Called under the lock just before clearing, whether or
                not an instance exists; must not block

        Returns:
            True if an instance was removed
        """
        async with self._lock:
            if before is not None:
                before()
            removed = self._state is not None
            self._state = None
            return removed
