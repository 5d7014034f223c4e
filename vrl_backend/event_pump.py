"""
Routes notification-channel events to the task tracker and the directories service.
"""

from __future__ import annotations

from collections.abc import AsyncIterable
from typing import Any, Optional

from .features.directories.service import WatchedDirectoriesService
from .features.tasks.events import TASK_EVENTS, parse_task_event
from .features.tasks.status import TaskStatusTracker
from .shared import get_logger

logger = get_logger(__name__)

DIRECTORY_CHANGED_EVENT = "directory-changed"


async def dispatch_event(
    name: str,
    payload: Any,
    *,
    tracker: TaskStatusTracker,
    directories: Optional[WatchedDirectoriesService] = None,
) -> bool:
    """Handle one event; returns False when it was malformed or unknown."""
    if name in TASK_EVENTS:
        parsed = parse_task_event(name, payload)
        if not parsed.ok:
            logger.debug("Skipping task event: %s", parsed.error)
            return False
        tracker.apply(parsed.data)
        return True

    if name == DIRECTORY_CHANGED_EVENT:
        path = payload.get("path") if isinstance(payload, dict) else None
        if directories is None or not path:
            logger.debug("Skipping %s event without path or service", name)
            return False
        res = await directories.handle_structure_change(str(path))
        if not res.ok:
            logger.debug("Structure change for %s not applied: %s", path, res.error)
        return True

    logger.debug("Unknown event ignored: %s", name)
    return False


async def pump_events(
    events: AsyncIterable[tuple[str, Any]],
    *,
    tracker: TaskStatusTracker,
    directories: Optional[WatchedDirectoriesService] = None,
) -> int:
    """Drain `events` until it ends; returns the number of events handled."""
    handled = 0
    async for name, payload in events:
        if await dispatch_event(name, payload, tracker=tracker, directories=directories):
            handled += 1
    return handled
