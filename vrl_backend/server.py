"""
Standalone aiohttp server hosting the `/vrl/` routes and the event pump.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any, Optional

from aiohttp import web

from .config import MAX_JSON_BYTES, SERVER_HOST, SERVER_PORT
from .deps import build_services, dispose_services
from .event_pump import pump_events
from .routes import APP_KEY_SERVICES, register_all_routes
from .shared import get_logger

logger = get_logger(__name__)

EVENT_RECONNECT_DELAY_S = 5.0


async def _run_event_pump(services: dict[str, Any], *, reconnect_delay_s: float = EVENT_RECONNECT_DELAY_S) -> None:
    bridge = services.get("bridge")
    tracker = services.get("tasks")
    if bridge is None or tracker is None:
        return
    while True:
        try:
            handled = await pump_events(bridge.events(), tracker=tracker, directories=services.get("directories"))
            logger.debug("Event channel closed after %d events; reconnecting", handled)
        except Exception as exc:
            logger.warning("Event pump failed: %s; reconnecting", exc)
        await asyncio.sleep(reconnect_delay_s)


async def _services_ctx(app: web.Application) -> AsyncIterator[None]:
    services = app[APP_KEY_SERVICES]
    built = await build_services()
    if not built.ok:
        logger.error("Failed to build services: %s", built.error)
        yield
        return
    services.update(built.data)
    pump = asyncio.create_task(_run_event_pump(services))
    try:
        yield
    finally:
        pump.cancel()
        await asyncio.gather(pump, return_exceptions=True)
        await dispose_services(services)
        services.clear()


def create_app(services: Optional[dict[str, Any]] = None) -> web.Application:
    """Build the application; services are created on startup unless injected."""
    app = web.Application(client_max_size=MAX_JSON_BYTES)
    if services is not None:
        register_all_routes(app, services)
        return app
    register_all_routes(app, {})
    app.cleanup_ctx.append(_services_ctx)
    return app


def main() -> None:
    web.run_app(create_app(), host=SERVER_HOST, port=SERVER_PORT)


if __name__ == "__main__":
    main()
