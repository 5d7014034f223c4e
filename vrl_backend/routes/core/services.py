"""
Access to the services dict attached to the aiohttp application.
"""

from __future__ import annotations

from typing import Any

from aiohttp import web

from ...shared import ErrorCode, Result

APP_KEY_SERVICES: web.AppKey[dict] = web.AppKey("vrl_services", dict)


def _require_services(request: web.Request) -> Result[dict[str, Any]]:
    services = request.app.get(APP_KEY_SERVICES)
    if not services:
        return Result.Err(ErrorCode.SERVICE_UNAVAILABLE, "Services are not initialized")
    return Result.Ok(services)


def _require_service(request: web.Request, name: str) -> Result[Any]:
    services = _require_services(request)
    if not services.ok:
        return services
    svc = services.data.get(name)
    if svc is None:
        return Result.Err(ErrorCode.SERVICE_UNAVAILABLE, f"Service unavailable: {name}")
    return Result.Ok(svc)
