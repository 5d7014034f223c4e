"""
Watched directories, selection and search-scope endpoints.
"""

from __future__ import annotations

from typing import Any, Optional

from aiohttp import web

from ...shared import ErrorCode, Result, get_logger
from ..core import _json_response, _read_json, _require_service

logger = get_logger(__name__)


def _string_list(body: dict, *keys: str) -> Optional[list[str]]:
    for key in keys:
        if key not in body:
            continue
        value = body.get(key)
        if isinstance(value, str):
            return [value]
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return list(value)
        return None
    return None


def _report_result(res: Result[Any]) -> Result[Any]:
    if res.ok:
        return Result.Ok(res.data)
    return res.propagate("Synchronization failed")


def register_directories_routes(routes: web.RouteTableDef) -> None:
    """Register watched directory routes."""

    @routes.get("/vrl/directories")
    async def get_directories(request):
        svc = _require_service(request, "directories")
        if not svc.ok:
            return _json_response(svc)
        return _json_response(Result.Ok(svc.data.state()))

    @routes.post("/vrl/directories")
    async def post_directories(request):
        svc = _require_service(request, "directories")
        if not svc.ok:
            return _json_response(svc)
        body_res = await _read_json(request)
        if not body_res.ok:
            return _json_response(body_res)

        paths = _string_list(body_res.data or {}, "paths", "path")
        if not paths:
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Expected 'paths' as a list of strings"))
        return _json_response(await svc.data.add(paths))

    @routes.delete("/vrl/directories")
    async def delete_directory(request):
        svc = _require_service(request, "directories")
        if not svc.ok:
            return _json_response(svc)
        path = str(request.query.get("path") or "").strip()
        if not path:
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Missing 'path' query parameter"))
        return _json_response(await svc.data.remove(path))

    @routes.post("/vrl/directories/sync")
    async def post_directories_sync(request):
        svc = _require_service(request, "directories")
        if not svc.ok:
            return _json_response(svc)
        return _json_response(_report_result(await svc.data.sync()))

    @routes.post("/vrl/selection")
    async def post_selection(request):
        svc = _require_service(request, "directories")
        if not svc.ok:
            return _json_response(svc)
        body_res = await _read_json(request)
        if not body_res.ok:
            return _json_response(body_res)

        ids = _string_list(body_res.data or {}, "ids")
        if ids is None:
            return _json_response(Result.Err(ErrorCode.INVALID_INPUT, "Expected 'ids' as a list of strings"))
        return _json_response(Result.Ok(svc.data.select(ids)))

    @routes.get("/vrl/search-scope")
    async def get_search_scope(request):
        svc = _require_service(request, "directories")
        if not svc.ok:
            return _json_response(svc)
        return _json_response(Result.Ok({"prefixes": list(svc.data.search_prefixes())}))
