"""
HTTP/websocket client for the external indexing service.

Commands are `POST {base}/invoke/{command}` with a JSON body and answer with the
`{ok, data, error, code}` envelope. Notifications arrive on the `{base}/events`
websocket as `{"event": name, "payload": {...}}` text frames.

Endpoints used:
  - read_dir                  -> filesystem listing service
  - add_watched_directory     -> watch persistence: watch
  - delete_watched_directory  -> watch persistence: unwatch
  - get_watched_directories   -> watch persistence: list at startup
"""
from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any, Optional

from aiohttp import ClientConnectionError, ClientError, ClientSession, ClientTimeout, WSMsgType

from ...config import BRIDGE_TIMEOUT_S, BRIDGE_URL
from ...features.directories.models import DirectoryListingEntry
from ...shared import ErrorCode, Result, get_logger, sanitize_error_message

logger = get_logger(__name__)

CMD_READ_DIR = "read_dir"
CMD_ADD_WATCHED = "add_watched_directory"
CMD_DELETE_WATCHED = "delete_watched_directory"
CMD_LIST_WATCHED = "get_watched_directories"

# Codes the service uses when the requested state already holds.
_ALREADY_WATCHED_CODES = frozenset({"ALREADY_EXISTS", "CONFLICT"})
_NOT_WATCHED_CODES = frozenset({"NOT_FOUND"})


class BridgeClient:
    """
    Usage:
        async with BridgeClient("http://127.0.0.1:8765") as bridge:
            res = await bridge.watch("/refs/anatomy")
    """

    def __init__(
        self,
        base_url: str = BRIDGE_URL,
        *,
        timeout_s: float = BRIDGE_TIMEOUT_S,
        session: Optional[ClientSession] = None,
    ):
        self._base_url = str(base_url or "").rstrip("/")
        self._timeout = ClientTimeout(total=timeout_s)
        self._session = session
        self._owns_session = session is None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> "BridgeClient":
        return self

    async def __aexit__(self, *_exc: Any) -> None:
        await self.close()

    def _get_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def invoke(self, command: str, payload: Optional[dict[str, Any]] = None) -> Result[Any]:
        url = f"{self._base_url}/invoke/{command}"
        try:
            async with self._get_session().post(url, json=payload or {}) as resp:
                if resp.status != 200:
                    return Result.Err(ErrorCode.BRIDGE_ERROR, f"{command} returned HTTP {resp.status}", status=resp.status)
                body = await resp.json(content_type=None)
        except asyncio.TimeoutError:
            logger.debug("Bridge command %s timed out", command)
            return Result.Err(ErrorCode.TIMEOUT, f"{command} timed out")
        except ClientConnectionError as exc:
            logger.debug("Bridge unreachable for %s: %s", command, exc)
            return Result.Err(ErrorCode.SERVICE_UNAVAILABLE, sanitize_error_message(exc, "Indexing service unreachable"))
        except (ClientError, ValueError) as exc:
            return Result.Err(ErrorCode.BRIDGE_ERROR, sanitize_error_message(exc, f"{command} failed"))
        return _unwrap_envelope(command, body)

    # ------------------------------------------------------------------
    # Filesystem listing service
    # ------------------------------------------------------------------

    async def list_directory(self, path: str) -> Result[list[DirectoryListingEntry]]:
        res = await self.invoke(CMD_READ_DIR, {"path": path})
        if not res.ok:
            return res.propagate(f"Cannot read directory {path}")
        rows = res.data if isinstance(res.data, list) else []
        return Result.Ok([entry for entry in (_listing_entry(row) for row in rows) if entry is not None])

    # ------------------------------------------------------------------
    # Watch persistence service
    # ------------------------------------------------------------------

    async def watch(self, path: str) -> Result[bool]:
        res = await self.invoke(CMD_ADD_WATCHED, {"directory_path": path})
        if res.ok or res.code in _ALREADY_WATCHED_CODES:
            return Result.Ok(True)
        return res.propagate(f"Failed to watch {path}")

    async def unwatch(self, path: str) -> Result[bool]:
        res = await self.invoke(CMD_DELETE_WATCHED, {"directory_path": path})
        if res.ok or res.code in _NOT_WATCHED_CODES:
            return Result.Ok(True)
        return res.propagate(f"Failed to unwatch {path}")

    async def list_watched(self) -> Result[list[str]]:
        res = await self.invoke(CMD_LIST_WATCHED)
        if not res.ok:
            return res.propagate("Failed to list watched directories")
        rows = res.data if isinstance(res.data, list) else []
        paths: list[str] = []
        for row in rows:
            path = row.get("path") if isinstance(row, dict) else row
            if path is not None and str(path):
                paths.append(str(path))
        return Result.Ok(paths)

    # ------------------------------------------------------------------
    # Notification channel
    # ------------------------------------------------------------------

    async def events(self) -> AsyncIterator[tuple[str, dict[str, Any]]]:
        """Yield `(event_name, payload)` pairs until the websocket closes."""
        url = f"{self._base_url}/events"
        try:
            async with self._get_session().ws_connect(url, heartbeat=30.0) as ws:
                async for msg in ws:
                    if msg.type == WSMsgType.TEXT:
                        parsed = _parse_event_message(msg.data)
                        if parsed is not None:
                            yield parsed
                    elif msg.type == WSMsgType.ERROR:
                        logger.warning("Event channel error: %s", ws.exception())
                        break
        except (ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Event channel unavailable: %s", sanitize_error_message(exc, "connection failed"))


def _unwrap_envelope(command: str, body: Any) -> Result[Any]:
    if not isinstance(body, dict) or "ok" not in body:
        return Result.Err(ErrorCode.BRIDGE_ERROR, f"Malformed response for {command}")
    if not body.get("ok"):
        code = str(body.get("code") or ErrorCode.BRIDGE_ERROR.value)
        return Result.Err(code, str(body.get("error") or f"{command} failed"))
    return Result.Ok(body.get("data"))


def _listing_entry(row: Any) -> Optional[DirectoryListingEntry]:
    if not isinstance(row, dict):
        return None
    name = str(row.get("name") or "").strip()
    if not name:
        return None
    is_dir = row.get("is_directory", row.get("isDirectory", False))
    real_path = row.get("real_path") or row.get("realPath")
    return DirectoryListingEntry(name=name, is_directory=bool(is_dir), real_path=str(real_path) if real_path else None)


def _parse_event_message(raw: Any) -> Optional[tuple[str, dict[str, Any]]]:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.debug("Dropping non-JSON event frame")
        return None
    if not isinstance(data, dict):
        return None
    name = str(data.get("event") or "").strip()
    if not name:
        return None
    payload = data.get("payload")
    return name, payload if isinstance(payload, dict) else {}
