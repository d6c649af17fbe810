"""
Fan-out of telemetry to WebSocket subscribers and broker topics.
"""

from .dispatcher import Dispatcher, build_envelope
from .registry import Subscriber, SubscriberRegistry
from .websocket import create_stream_app

__all__ = [
    "Dispatcher",
    "build_envelope",
    "Subscriber",
    "SubscriberRegistry",
    "create_stream_app",
]
