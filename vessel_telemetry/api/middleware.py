"""
Error handling middleware for the REST API.

Application errors become {"message": ...} envelopes with their status;
anything unexpected is logged and reported as a generic 500.
"""

from aiohttp import web

from ..errors import TelemetryError
from ..logging import get_logger


logger = get_logger("api")


def envelope(message: str, data=None, status: int = 200) -> web.Response:
    """JSON response in the {message, data?} envelope."""
    body = {"message": message}
    if data is not None:
        body["data"] = data
    return web.json_response(body, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except TelemetryError as e:
        if e.status >= 500:
            logger.warning(f"{request.method} {request.path}: {e}")
        return envelope(str(e), status=e.status)
    except web.HTTPException as e:
        if e.empty_body:
            raise
        return envelope(e.reason, status=e.status)
    except Exception:
        logger.exception(f"Unhandled error in {request.method} {request.path}")
        return envelope("Internal server error", status=500)
