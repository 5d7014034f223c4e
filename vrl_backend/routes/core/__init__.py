"""
Core utilities for route handlers.
"""
from .request_json import _read_json
from .response import _json_response, _sanitize_json_payload
from .services import APP_KEY_SERVICES, _require_service, _require_services

__all__ = [
    "APP_KEY_SERVICES",
    "_json_response",
    "_read_json",
    "_require_service",
    "_require_services",
    "_sanitize_json_payload",
]
