"""
Position sensor simulator.

Dead-reckons the vessel along a great circle from its speed and heading,
then refreshes the magnetic variation for the new position.
"""

from datetime import datetime

from ..models.sensor import GpsState, SensorKind
from ..utils.geo import advance_position, clamp_speed, normalize_degrees
from ..utils.geomag import magnetic_variation
from .base import Simulator


def step_gps(state: GpsState, dt: float, now: datetime) -> None:
    """Advance a GPS reading by dt seconds, in place."""
    state.speed = clamp_speed(state.speed)
    state.heading = normalize_degrees(state.heading)

    state.latitude, state.longitude = advance_position(
        state.latitude,
        state.longitude,
        state.speed,
        state.heading,
        dt,
    )

    state.last_update = now
    state.variation = magnetic_variation(state.latitude, state.longitude, now)


class GpsSimulator(Simulator):
    """Simulator for the position/navigation sensor."""

    KIND = SensorKind.GPS

    def step(self, state: GpsState, dt: float, now: datetime) -> None:
        step_gps(state, dt, now)
