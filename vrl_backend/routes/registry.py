"""
Route registration and request middlewares.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from ..shared import get_logger, request_id_var
from .core import APP_KEY_SERVICES
from .handlers import register_directories_routes, register_tasks_routes

logger = get_logger(__name__)

API_PREFIX = "/vrl/"
_APP_KEY_ROUTES_REGISTERED: web.AppKey[bool] = web.AppKey("_vrl_routes_registered", bool)


@web.middleware
async def request_id_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Expose `X-Request-ID` to log records and echo it on API responses."""
    rid = str(request.headers.get("X-Request-ID") or "").strip()[:128] or uuid.uuid4().hex
    token = request_id_var.set(rid)
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers["X-Request-ID"] = rid
        raise
    finally:
        request_id_var.reset(token)
    if request.path.startswith(API_PREFIX):
        response.headers["X-Request-ID"] = rid
    return response


def build_route_table() -> web.RouteTableDef:
    routes = web.RouteTableDef()
    register_directories_routes(routes)
    register_tasks_routes(routes)
    return routes


def register_all_routes(app: web.Application, services: dict[str, Any]) -> None:
    """Attach services, middlewares and every `/vrl/` route to `app` (idempotent)."""
    app[APP_KEY_SERVICES] = services
    if app.get(_APP_KEY_ROUTES_REGISTERED):
        return
    app.middlewares.append(request_id_middleware)
    routes = build_route_table()
    app.add_routes(routes)
    app[_APP_KEY_ROUTES_REGISTERED] = True
    logger.debug("Registered %d routes", len(routes))
