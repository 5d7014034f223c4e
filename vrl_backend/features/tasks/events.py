"""
Task notification events emitted by the indexing service.

`task-status` carries `{uuid, status}` and covers both the first report of a task
and later progress; `task-end` carries `{uuid}`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ...shared import ErrorCode, Result

TASK_STATUS_EVENT = "task-status"
TASK_END_EVENT = "task-end"

TASK_EVENTS = frozenset({TASK_STATUS_EVENT, TASK_END_EVENT})

_ID_KEYS = ("uuid", "task_id", "taskId")


@dataclass(frozen=True)
class TaskEvent:
    kind: str
    task_id: str
    status: Optional[str] = None

    @classmethod
    def status_update(cls, task_id: str, status: str) -> "TaskEvent":
        return cls(TASK_STATUS_EVENT, task_id, status)

    @classmethod
    def end(cls, task_id: str) -> "TaskEvent":
        return cls(TASK_END_EVENT, task_id)


def _task_id(payload: dict[str, Any]) -> str:
    for key in _ID_KEYS:
        value = payload.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def parse_task_event(name: str, payload: Any) -> Result[TaskEvent]:
    if name not in TASK_EVENTS:
        return Result.Err(ErrorCode.INVALID_INPUT, f"Not a task event: {name}")
    if not isinstance(payload, dict):
        return Result.Err(ErrorCode.INVALID_INPUT, f"Invalid {name} payload")
    task_id = _task_id(payload)
    if not task_id:
        return Result.Err(ErrorCode.INVALID_INPUT, f"Missing task id in {name} payload")
    if name == TASK_END_EVENT:
        return Result.Ok(TaskEvent.end(task_id))
    status = payload.get("status")
    return Result.Ok(TaskEvent.status_update(task_id, "" if status is None else str(status)))
