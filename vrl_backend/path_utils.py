"""
Path normalization and ancestor/descendant queries over watched paths.

All comparisons are segment-based so `/foo` never matches `/foobar`. The
separator convention is an injected `PathPolicy` because the external service
may report paths in either style.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass

from .config import PATH_STYLE


@dataclass(frozen=True)
class PathPolicy:
    """Separator convention used to normalize and compare paths."""

    separator: str = "/"
    alternate_separators: tuple[str, ...] = ()

    def normalize(self, path: str) -> str:
        value = str(path or "")
        if not value:
            return ""
        sep = self.separator
        for alt in self.alternate_separators:
            value = value.replace(alt, sep)
        unc = value.startswith(sep * 2) and len(value.strip(sep)) > 0
        double = sep * 2
        while double in value:
            value = value.replace(double, sep)
        if unc:
            value = sep + value
        stripped = value.rstrip(sep)
        if not stripped:
            return sep
        if _is_drive(stripped):
            return stripped + sep
        return stripped

    def segments(self, path: str) -> tuple[str, ...]:
        normalized = self.normalize(path)
        if not normalized:
            return ()
        return tuple(normalized.rstrip(self.separator).split(self.separator))

    def is_ancestor_or_self(self, ancestor: str, path: str) -> bool:
        """True when `path` equals `ancestor` or lies underneath it."""
        head = self.segments(ancestor)
        tail = self.segments(path)
        if not head or not tail or len(head) > len(tail):
            return False
        return tail[: len(head)] == head

    def overlaps(self, a: str, b: str) -> bool:
        return self.is_ancestor_or_self(a, b) or self.is_ancestor_or_self(b, a)

    def find_conflict(self, candidate: str, existing: Iterable[str]) -> str | None:
        """Return the first path in `existing` equal to, above, or below `candidate`."""
        for path in existing:
            if self.overlaps(candidate, path):
                return path
        return None

    def conflicts_with_any(self, candidate: str, existing: Iterable[str]) -> bool:
        return self.find_conflict(candidate, existing) is not None

    def basename(self, path: str) -> str:
        normalized = self.normalize(path)
        parts = self.segments(normalized)
        if not parts:
            return ""
        return parts[-1] or normalized

    def join(self, parent: str, name: str) -> str:
        base = self.normalize(parent)
        if not base:
            return str(name)
        if base.endswith(self.separator):
            return base + str(name)
        return base + self.separator + str(name)


def _is_drive(value: str) -> bool:
    return len(value) == 2 and value[1] == ":" and value[0].isalpha()


POSIX_POLICY = PathPolicy("/", ())
WINDOWS_POLICY = PathPolicy("\\", ("/",))


def policy_for_style(style: str | None) -> PathPolicy:
    s = str(style or "").strip().lower()
    if s == "posix":
        return POSIX_POLICY
    if s == "windows":
        return WINDOWS_POLICY
    return WINDOWS_POLICY if os.sep == "\\" else POSIX_POLICY


def default_policy() -> PathPolicy:
    """Policy selected by `VRL_PATH_STYLE`."""
    return policy_for_style(PATH_STYLE)
