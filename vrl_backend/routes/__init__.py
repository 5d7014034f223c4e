"""
HTTP surface for UI clients.
"""
from .core import APP_KEY_SERVICES
from .registry import register_all_routes, request_id_middleware

__all__ = ["APP_KEY_SERVICES", "register_all_routes", "request_id_middleware"]
