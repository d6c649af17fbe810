"""
MQTT broker connection management.
"""

from .client import BrokerCommand, BrokerConnection, ConnectionState, create_client

__all__ = [
    "BrokerCommand",
    "BrokerConnection",
    "ConnectionState",
    "create_client",
]
