"""
Background task status endpoint.
"""

from aiohttp import web

from ...shared import Result
from ..core import _json_response, _require_service


def register_tasks_routes(routes: web.RouteTableDef) -> None:
    @routes.get("/vrl/tasks")
    async def get_tasks(request):
        tracker = _require_service(request, "tasks")
        if not tracker.ok:
            return _json_response(tracker)
        statuses = tracker.data.statuses
        return _json_response(
            Result.Ok(
                {
                    "busy": bool(statuses),
                    "tasks": [{"id": task_id, "status": status} for task_id, status in statuses.items()],
                }
            )
        )
