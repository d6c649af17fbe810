"""
Data models for sensor configuration and state.
"""

from .sensor import STATE_TYPES, GpsState, GyroState, SensorConfig, SensorKind, SensorState

__all__ = [
    "SensorKind",
    "SensorConfig",
    "SensorState",
    "GpsState",
    "GyroState",
    "STATE_TYPES",
]
