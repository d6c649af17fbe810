"""
REST API routes (aiohttp).

    GET/POST/PATCH/DELETE  /sensors/{kind}
    GET/POST/PATCH/DELETE  /sensors/{kind}/config
    POST                   /sensors/{kind}/reconnect

POST and PATCH on config share merge semantics: present fields overwrite.
"""

import json
from typing import Any

from aiohttp import web

from ..errors import NotFoundError, ValidationError
from ..models.sensor import SensorKind
from ..service import SensorService
from .middleware import envelope, error_middleware


SERVICES_KEY = web.AppKey("services", dict)

routes = web.RouteTableDef()


def _service(request: web.Request) -> SensorService:
    kind_name = request.match_info["kind"]
    try:
        kind = SensorKind(kind_name)
    except ValueError:
        raise NotFoundError(f"Unknown sensor kind '{kind_name}'") from None
    return request.app[SERVICES_KEY][kind]


async def _body(request: web.Request) -> Any:
    try:
        return await request.json()
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON body: {e.msg}") from e


def _label(service: SensorService) -> str:
    return service.kind.value.upper() if service.kind is SensorKind.GPS else service.kind.value.capitalize()


# --- sensor state -------------------------------------------------------------


@routes.get("/sensors/{kind}")
async def get_sensor(request: web.Request) -> web.Response:
    service = _service(request)
    data = await service.get_state()
    return envelope(f"{_label(service)} retrieved successfully.", data)


@routes.post("/sensors/{kind}")
async def create_sensor(request: web.Request) -> web.Response:
    service = _service(request)
    data = await service.create_state(await _body(request))
    return envelope(f"{_label(service)} created successfully.", data, status=201)


@routes.patch("/sensors/{kind}")
async def update_sensor(request: web.Request) -> web.Response:
    service = _service(request)
    data = await service.update_state(await _body(request))
    return envelope(f"{_label(service)} updated successfully.", data)


@routes.delete("/sensors/{kind}")
async def delete_sensor(request: web.Request) -> web.Response:
    service = _service(request)
    await service.delete_state()
    return envelope(f"{_label(service)} deleted successfully.")


# --- configuration -------------------------------------------------------------


@routes.get("/sensors/{kind}/config")
async def get_config(request: web.Request) -> web.Response:
    service = _service(request)
    data = await service.get_config()
    return envelope(f"{_label(service)} config retrieved successfully.", data)


@routes.post("/sensors/{kind}/config")
async def replace_config(request: web.Request) -> web.Response:
    service = _service(request)
    data = await service.replace_config(await _body(request))
    return envelope(f"{_label(service)} config updated successfully.", data)


@routes.patch("/sensors/{kind}/config")
async def update_config(request: web.Request) -> web.Response:
    service = _service(request)
    data = await service.update_config(await _body(request))
    return envelope(f"{_label(service)} config updated successfully.", data)


@routes.delete("/sensors/{kind}/config")
async def delete_config(request: web.Request) -> web.Response:
    service = _service(request)
    await service.delete_config()
    return envelope(f"{_label(service)} config deleted successfully.")


@routes.post("/sensors/{kind}/reconnect")
async def reconnect(request: web.Request) -> web.Response:
    service = _service(request)
    service.request_reconnect()
    return envelope(f"{_label(service)} broker reconnect requested.", status=202)


def create_api_app(services: dict[SensorKind, SensorService]) -> web.Application:
    """Build the aiohttp application for the REST API."""
    app = web.Application(middlewares=[error_middleware])
    app[SERVICES_KEY] = services
    app.add_routes(routes)
    return app
