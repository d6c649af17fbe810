"""
WebSocket fan-out endpoint (aiohttp).

Each connection registers a Subscriber and runs a sender task that drains
its queue onto the socket. Text frames received from a peer are broadcast
to every subscriber as-is (diagnostic echo), independent of telemetry.
"""

import asyncio
import weakref
from contextlib import suppress

from aiohttp import WSCloseCode, WSMsgType, web

from ..logging import get_logger
from .registry import Subscriber, SubscriberRegistry


logger = get_logger("stream.websocket")

REGISTRY_KEY = web.AppKey("registry", SubscriberRegistry)
SOCKETS_KEY = web.AppKey("sockets", weakref.WeakSet)
HEARTBEAT_SECONDS = 30.0


async def _pump(ws: web.WebSocketResponse, subscriber: Subscriber) -> None:
    """Send queued messages until the subscriber closes or the socket fails."""
    while True:
        message = await subscriber.receive()
        if message is None:
            break
        try:
            await ws.send_str(message)
        except Exception as e:
            logger.debug(f"Send to {subscriber.name} failed: {e}")
            break
    subscriber.close()


async def websocket_handler(request: web.Request) -> web.WebSocketResponse:
    """Accept a viewer and stream envelopes to it until it disconnects."""
    registry = request.app[REGISTRY_KEY]

    ws = web.WebSocketResponse(heartbeat=HEARTBEAT_SECONDS)
    await ws.prepare(request)
    request.app[SOCKETS_KEY].add(ws)

    subscriber = Subscriber(name=f"ws:{request.remote}")
    registry.add(subscriber)
    sender = asyncio.create_task(_pump(ws, subscriber))

    try:
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                registry.broadcast(msg.data)
            elif msg.type == WSMsgType.ERROR:
                logger.warning(f"{subscriber.name} closed with error: {ws.exception()}")
    finally:
        subscriber.close()
        registry.remove(subscriber)
        sender.cancel()
        with suppress(asyncio.CancelledError):
            await sender
        request.app[SOCKETS_KEY].discard(ws)

    return ws


async def _close_sockets(app: web.Application) -> None:
    for ws in set(app[SOCKETS_KEY]):
        await ws.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")


def create_stream_app(registry: SubscriberRegistry) -> web.Application:
    """Build the aiohttp application serving the fan-out socket."""
    app = web.Application()
    app[REGISTRY_KEY] = registry
    app[SOCKETS_KEY] = weakref.WeakSet()
    app.on_shutdown.append(_close_sockets)
    app.router.add_get("/ws", websocket_handler)
    app.router.add_get("/", websocket_handler)
    return app
