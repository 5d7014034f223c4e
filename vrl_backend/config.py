"""
Configuration for the visual reference library backend.

Every setting is read from the environment once at import time; invalid values
fall back to the default with a warning, out-of-range values are clamped.
"""
import logging
import os

from .utils import env_bool

logger = logging.getLogger(__name__)


def _env_raw(*names: str, default: str | None = None) -> str | None:
    for name in names:
        if not name:
            continue
        val = os.getenv(name)
        if val is not None and str(val).strip() != "":
            return str(val).strip()
    return default


def _env_int(default: int, *names: str, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid integer for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_float(default: float, *names: str, min_value: float | None = None, max_value: float | None = None) -> float:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid float for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_bool(default: bool, *names: str) -> bool:
    for name in names:
        if name and name in os.environ:
            return env_bool(name, default)
    return default


def _env_choice(default: str, choices: tuple[str, ...], *names: str) -> str:
    raw = str(_env_raw(*names, default=default) or default).strip().lower()
    if raw not in choices:
        logger.warning("Invalid value for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    return raw


# --- Bridge to the external indexing/persistence service ---
BRIDGE_URL = str(_env_raw("VRL_BRIDGE_URL", default="http://127.0.0.1:8765") or "").rstrip("/")
BRIDGE_TIMEOUT_S = _env_float(30.0, "VRL_BRIDGE_TIMEOUT_S", min_value=1.0, max_value=600.0)

# Where directory listings come from: in-process scandir or the bridge `read_dir` command
LISTING_BACKEND = _env_choice("local", ("local", "bridge"), "VRL_LISTING_BACKEND")

# Separator policy for path comparisons: posix, windows, or auto (follow os.sep)
PATH_STYLE = _env_choice("auto", ("auto", "posix", "windows"), "VRL_PATH_STYLE")

# --- Directory tree building ---
TREE_MAX_DEPTH = _env_int(64, "VRL_TREE_MAX_DEPTH", min_value=1, max_value=4096)
TREE_LIST_CONCURRENCY = _env_int(8, "VRL_TREE_LIST_CONCURRENCY", min_value=1, max_value=256)
TREE_FOLLOW_SYMLINKS = _env_bool(True, "VRL_TREE_FOLLOW_SYMLINKS")
TREE_INCLUDE_HIDDEN = _env_bool(False, "VRL_TREE_INCLUDE_HIDDEN")

# --- Synchronization with the watch persistence service ---
SYNC_MAX_CONCURRENCY = _env_int(8, "VRL_SYNC_MAX_CONCURRENCY", min_value=1, max_value=128)

# --- Filesystem change notifier ---
# Disable with VRL_ENABLE_WATCHER=0
WATCHER_ENABLED = _env_bool(True, "VRL_ENABLE_WATCHER")
WATCHER_DEBOUNCE_MS = _env_int(500, "VRL_WATCHER_DEBOUNCE_MS", min_value=0, max_value=120_000)

# --- Local HTTP surface ---
SERVER_HOST = str(_env_raw("VRL_SERVER_HOST", default="127.0.0.1") or "127.0.0.1")
SERVER_PORT = _env_int(8766, "VRL_SERVER_PORT", min_value=1, max_value=65535)
MAX_JSON_BYTES = _env_int(1024 * 1024, "VRL_MAX_JSON_BYTES", min_value=1024, max_value=64 * 1024 * 1024)
