from .events import TASK_END_EVENT, TASK_STATUS_EVENT, TaskEvent, parse_task_event
from .status import TaskStatusTracker

__all__ = [
    "TASK_END_EVENT",
    "TASK_STATUS_EVENT",
    "TaskEvent",
    "TaskStatusTracker",
    "parse_task_event",
]
