"""
Orientation sensor simulator.

Yaw integrates the configured yaw rate. Roll and pitch do not integrate:
they follow a small sinusoidal sway anchored to wall-clock time plus
Gaussian noise, which keeps them bounded like a self-righting hull.
"""

import math
import random
from collections.abc import Callable
from datetime import datetime

from ..const import PITCH_LIMIT, ROLL_LIMIT, YAW_RATE_LIMIT
from ..models.sensor import GyroState, SensorKind, utcnow
from ..store import ConfigStore, StateStore
from ..utils.geo import clamp, normalize_degrees
from .base import Notify, Simulator


ROLL_AMPLITUDE = 2.0  # degrees
ROLL_PERIOD = 8.0  # seconds
PITCH_AMPLITUDE = 1.0
PITCH_PERIOD = 10.0
NOISE_SIGMA = 0.05  # degrees


def sway(amplitude: float, period: float, t: float) -> float:
    """Sinusoidal oscillation centred on zero."""
    return amplitude * math.sin(2.0 * math.pi * t / period)


def step_gyro(state: GyroState, dt: float, now: datetime, rng: random.Random) -> None:
    """Advance a gyro reading by dt seconds, in place."""
    yaw_rate = clamp(state.yaw_rate, -YAW_RATE_LIMIT, YAW_RATE_LIMIT)
    state.yaw = normalize_degrees(state.yaw + yaw_rate * dt)

    t = now.timestamp()
    state.roll = clamp(
        sway(ROLL_AMPLITUDE, ROLL_PERIOD, t) + rng.gauss(0.0, NOISE_SIGMA),
        -ROLL_LIMIT,
        ROLL_LIMIT,
    )
    state.pitch = clamp(
        sway(PITCH_AMPLITUDE, PITCH_PERIOD, t) + rng.gauss(0.0, NOISE_SIGMA),
        -PITCH_LIMIT,
        PITCH_LIMIT,
    )

    state.last_update = now


class GyroSimulator(Simulator):
    """Simulator for the orientation/inertial sensor."""

    KIND = SensorKind.GYRO

    def __init__(
        self,
        config_store: ConfigStore,
        state_store: StateStore,
        notify: Notify,
        clock: Callable[[], datetime] = utcnow,
        rng: random.Random | None = None,
    ):
        super().__init__(config_store, state_store, notify, clock)
        self.rng = rng or random.Random()

    def step(self, state: GyroState, dt: float, now: datetime) -> None:
        step_gyro(state, dt, now, self.rng)
