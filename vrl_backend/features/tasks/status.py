"""
TaskStatusTracker - in-flight background tasks and the aggregate busy signal.

Each change swaps in a new read-only mapping, so consumers can detect changes by
identity. Unknown ids on end and repeated starts are tolerated as no-ops because
the notifier may drop or duplicate events.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Optional

from ...shared import get_logger
from .events import TASK_END_EVENT, TaskEvent

logger = get_logger(__name__)

StatusListener = Callable[[Mapping[str, str], Mapping[str, str]], None]

_EMPTY: Mapping[str, str] = MappingProxyType({})


class TaskStatusTracker:
    def __init__(self) -> None:
        self._statuses: Mapping[str, str] = _EMPTY
        self._listeners: list[StatusListener] = []

    @property
    def statuses(self) -> Mapping[str, str]:
        return self._statuses

    @property
    def busy(self) -> bool:
        return len(self._statuses) > 0

    @property
    def count(self) -> int:
        return len(self._statuses)

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def start(self, task_id: str, status: str) -> bool:
        if task_id in self._statuses:
            logger.debug("Duplicate start for task %s ignored", task_id)
            return False
        return self._replace({**self._statuses, task_id: status})

    def progress(self, task_id: str, status: str) -> bool:
        """Replace a task's status; an unseen id starts tracking (its start was lost)."""
        if task_id in self._statuses and self._statuses[task_id] == status:
            return False
        return self._replace({**self._statuses, task_id: status})

    def end(self, task_id: str) -> bool:
        if task_id not in self._statuses:
            logger.debug("End for unknown task %s ignored", task_id)
            return False
        return self._replace({k: v for k, v in self._statuses.items() if k != task_id})

    def apply(self, event: TaskEvent) -> bool:
        """Apply one notification; returns whether the map changed."""
        if event.kind == TASK_END_EVENT:
            return self.end(event.task_id)
        status = event.status or ""
        if event.task_id in self._statuses:
            return self.progress(event.task_id, status)
        return self.start(event.task_id, status)

    async def consume(self, channel: "asyncio.Queue[Optional[TaskEvent]]") -> int:
        """Apply events from `channel` until a `None` sentinel arrives; returns events applied."""
        applied = 0
        while True:
            event = await channel.get()
            try:
                if event is None:
                    return applied
                self.apply(event)
                applied += 1
            finally:
                channel.task_done()

    def _replace(self, statuses: dict[str, str]) -> bool:
        old = self._statuses
        self._statuses = MappingProxyType(statuses)
        if old and not statuses:
            logger.debug("All background tasks finished")
        for listener in list(self._listeners):
            try:
                listener(old, self._statuses)
            except Exception:
                logger.debug("Task status listener failed", exc_info=True)
        return True
