"""
Client-facing error text.

Exceptions from the filesystem or the indexing service often carry absolute
paths of the machine running the backend; those are replaced with `[path]`
before the message leaves the process.
"""
from __future__ import annotations

import os
import re
from typing import Any

from .log import get_logger

logger = get_logger(__name__)

MAX_DETAIL_CHARS = 200

_DEBUG_ERRORS = os.getenv("VRL_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")

# Drive paths, UNC shares, then POSIX paths not embedded in a URL.
_PATH_RE = re.compile(
    r"[A-Za-z]:\\[^\s]+"
    r"|\\\\[^\s\\]+\\[^\s]+"
    r"|(?<![A-Za-z0-9:/?&=#%])/(?!/)[^\s#?]+"
)


def sanitize_error_message(exc: Any, fallback: str) -> str:
    """`"<fallback>: <detail>"` with paths masked, or just `fallback` when there is no detail."""
    fallback = fallback or "An error occurred"
    try:
        raw = "" if exc is None else str(exc)
    except Exception:
        raw = ""

    detail = " ".join(_PATH_RE.sub("[path]", raw).split())
    if _DEBUG_ERRORS and detail:
        logger.debug("Sanitized error detail: %s", detail, exc_info=True)
    if not detail:
        return fallback
    return f"{fallback}: {detail[:MAX_DETAIL_CHARS]}"
