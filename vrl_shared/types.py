"""
Shared types, enums, and constants.
"""
from enum import Enum


# Error codes
class ErrorCode(str, Enum):
    """Standardized error codes (string enum)."""

    # Client / validation
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_JSON = "INVALID_JSON"
    NOT_FOUND = "NOT_FOUND"

    # Watched-directory admission
    OVERLAP = "OVERLAP"
    UNREADABLE = "UNREADABLE"
    STALE = "STALE"

    # Tree build diagnostics
    CYCLE = "CYCLE"
    MAX_DEPTH = "MAX_DEPTH"

    # Synchronization with the persistence service
    SYNC_FAILED = "SYNC_FAILED"

    # Bridge / infrastructure
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    BRIDGE_ERROR = "BRIDGE_ERROR"
