import asyncio
import json

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp import test_utils

from vrl_backend.adapters.bridge import BridgeClient


def _make_app(state):
    async def invoke(request):
        command = request.match_info["command"]
        body = await request.json()
        state["calls"].append((command, body))
        response = state["responses"].get(command, {"ok": True, "data": None})
        if callable(response):
            return await response(request)
        return web.json_response(response)

    async def events(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        for frame in state["frames"]:
            await ws.send_str(frame)
        await ws.close()
        return ws

    app = web.Application()
    app.router.add_post("/invoke/{command}", invoke)
    app.router.add_get("/events", events)
    return app


@pytest_asyncio.fixture
async def bridge():
    state = {"calls": [], "responses": {}, "frames": []}
    server = test_utils.TestServer(_make_app(state))
    await server.start_server()
    client = BridgeClient(str(server.make_url("")), timeout_s=5.0)
    try:
        yield client, state
    finally:
        await client.close()
        await server.close()


@pytest.mark.asyncio
async def test_list_directory_maps_entries(bridge):
    client, state = bridge
    state["responses"]["read_dir"] = {
        "ok": True,
        "data": [
            {"name": "poses", "is_directory": True},
            {"name": "sheet.png", "is_directory": False},
            {"name": "linked", "isDirectory": True, "realPath": "/shared"},
            {"name": ""},
            "junk",
        ],
    }

    res = await client.list_directory("/refs")
    assert res.ok
    assert [(e.name, e.is_directory, e.real_path) for e in res.data] == [
        ("poses", True, None),
        ("sheet.png", False, None),
        ("linked", True, "/shared"),
    ]
    assert state["calls"] == [("read_dir", {"path": "/refs"})]


@pytest.mark.asyncio
async def test_watch_and_unwatch_send_directory_path(bridge):
    client, state = bridge
    assert (await client.watch("/refs")).ok
    assert (await client.unwatch("/refs")).ok
    assert state["calls"] == [
        ("add_watched_directory", {"directory_path": "/refs"}),
        ("delete_watched_directory", {"directory_path": "/refs"}),
    ]


@pytest.mark.asyncio
async def test_envelope_errors_keep_their_code(bridge):
    client, state = bridge
    state["responses"]["add_watched_directory"] = {"ok": False, "error": "database locked", "code": "DB_ERROR"}
    res = await client.watch("/refs")
    assert not res.ok
    assert res.code == "DB_ERROR"
    assert res.error == "database locked"


@pytest.mark.asyncio
async def test_idempotent_watch_and_unwatch(bridge):
    client, state = bridge
    state["responses"]["add_watched_directory"] = {"ok": False, "error": "exists", "code": "ALREADY_EXISTS"}
    state["responses"]["delete_watched_directory"] = {"ok": False, "error": "missing", "code": "NOT_FOUND"}
    assert (await client.watch("/refs")).ok
    assert (await client.unwatch("/refs")).ok


@pytest.mark.asyncio
async def test_list_watched_accepts_rows_and_strings(bridge):
    client, state = bridge
    state["responses"]["get_watched_directories"] = {
        "ok": True,
        "data": [{"id": 1, "path": "/a"}, "/b", {"id": 3}, None],
    }
    res = await client.list_watched()
    assert res.data == ["/a", "/b"]


@pytest.mark.asyncio
async def test_http_error_maps_to_bridge_error(bridge):
    client, state = bridge

    async def _fail(_request):
        return web.json_response({"detail": "boom"}, status=500)

    state["responses"]["read_dir"] = _fail
    res = await client.list_directory("/refs")
    assert res.code == "BRIDGE_ERROR"


@pytest.mark.asyncio
async def test_malformed_response_maps_to_bridge_error(bridge):
    client, state = bridge

    async def _garbage(_request):
        return web.Response(text="not json")

    state["responses"]["get_watched_directories"] = _garbage
    res = await client.list_watched()
    assert res.code == "BRIDGE_ERROR"

    state["responses"]["get_watched_directories"] = {"data": []}
    res = await client.list_watched()
    assert res.code == "BRIDGE_ERROR"


@pytest.mark.asyncio
async def test_slow_service_maps_to_timeout(bridge):
    client, state = bridge

    async def _slow(_request):
        await asyncio.sleep(2)
        return web.json_response({"ok": True, "data": True})

    state["responses"]["add_watched_directory"] = _slow
    slow_client = BridgeClient(client.base_url, timeout_s=0.2)
    try:
        res = await slow_client.watch("/refs")
    finally:
        await slow_client.close()
    assert res.code == "TIMEOUT"


@pytest.mark.asyncio
async def test_unreachable_service_maps_to_service_unavailable():
    server = test_utils.TestServer(web.Application())
    await server.start_server()
    url = str(server.make_url(""))
    await server.close()

    async with BridgeClient(url, timeout_s=2.0) as client:
        res = await client.watch("/refs")
    assert res.code == "SERVICE_UNAVAILABLE"


@pytest.mark.asyncio
async def test_events_yield_parsed_frames(bridge):
    client, state = bridge
    state["frames"] = [
        json.dumps({"event": "task-status", "payload": {"uuid": "t1", "status": "Scanning"}}),
        "not json",
        json.dumps({"payload": {}}),
        json.dumps({"event": "task-end", "payload": {"uuid": "t1"}}),
        json.dumps({"event": "directory-changed", "payload": "bad"}),
    ]

    received = [item async for item in client.events()]
    assert received == [
        ("task-status", {"uuid": "t1", "status": "Scanning"}),
        ("task-end", {"uuid": "t1"}),
        ("directory-changed", {}),
    ]


@pytest.mark.asyncio
async def test_events_end_quietly_when_handshake_is_refused():
    server = test_utils.TestServer(web.Application())
    await server.start_server()
    client = BridgeClient(str(server.make_url("")), timeout_s=5.0)
    try:
        received = [item async for item in client.events()]
    finally:
        await client.close()
        await server.close()
    assert received == []
