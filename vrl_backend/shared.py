"""Backend-facing alias for shared utilities.

Backend modules import from `vrl_backend.shared` so the shared package can be
reorganized without touching every feature module.
"""

from __future__ import annotations

import vrl_shared as _root_shared

Result = _root_shared.Result
ErrorCode = _root_shared.ErrorCode
get_logger = _root_shared.get_logger
log_success = _root_shared.log_success
log_structured = _root_shared.log_structured
request_id_var = _root_shared.request_id_var
sanitize_error_message = _root_shared.sanitize_error_message
ms = _root_shared.ms
timer = _root_shared.timer

__all__ = [
    "Result",
    "ErrorCode",
    "get_logger",
    "log_success",
    "log_structured",
    "request_id_var",
    "sanitize_error_message",
    "ms",
    "timer",
]
