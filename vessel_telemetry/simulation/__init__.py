"""
Periodic state-update engines for the simulated sensors.
"""

from ..models.sensor import SensorKind
from .base import Notify, Simulator
from .gps import GpsSimulator
from .gyro import GyroSimulator

SIMULATORS: dict[SensorKind, type[Simulator]] = {
    SensorKind.GPS: GpsSimulator,
    SensorKind.GYRO: GyroSimulator,
}

__all__ = [
    "Notify",
    "Simulator",
    "GpsSimulator",
    "GyroSimulator",
    "SIMULATORS",
]
