"""Shared utilities for the visual reference library backend."""
from .errors import sanitize_error_message
from .log import get_logger, log_structured, log_success, request_id_var
from .result import Result
from .time import ms, now, timer
from .types import ErrorCode

__all__ = [
    "Result",
    "get_logger",
    "log_success",
    "now",
    "ms",
    "timer",
    "ErrorCode",
    "log_structured",
    "request_id_var",
    "sanitize_error_message",
]
