"""
Vessel Telemetry - simulated GPS and gyro sensors published over MQTT and WebSocket.
"""

from .const import APP_VERSION

__version__ = APP_VERSION

__all__ = ["__version__"]
