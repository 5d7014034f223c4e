"""
Data model for watched directory trees, admissions and sync reports.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Optional, Protocol

from ...shared import Result


@dataclass(frozen=True)
class DirectoryListingEntry:
    """One entry reported by the filesystem listing service."""

    name: str
    is_directory: bool
    # Canonical target for symlinks/junctions, used to detect cycles.
    real_path: Optional[str] = None


@dataclass(frozen=True)
class DirectoryTreeNode:
    """One directory; `id` is its absolute path and doubles as the unique key."""

    id: str
    label: str
    children: tuple["DirectoryTreeNode", ...] = ()

    def iter_ids(self) -> Iterator[str]:
        stack: list[DirectoryTreeNode] = [self]
        while stack:
            node = stack.pop()
            yield node.id
            stack.extend(reversed(node.children))

    def find(self, node_id: str) -> Optional["DirectoryTreeNode"]:
        stack: list[DirectoryTreeNode] = [self]
        while stack:
            node = stack.pop()
            if node.id == node_id:
                return node
            stack.extend(node.children)
        return None

    def count(self) -> int:
        return sum(1 for _ in self.iter_ids())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(frozen=True)
class TreeDiagnostic:
    """Non-fatal problem met while building a tree (skipped subtree, cycle, depth cap)."""

    path: str
    code: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "code": self.code, "message": self.message}


@dataclass(frozen=True)
class BuiltTree:
    node: DirectoryTreeNode
    diagnostics: tuple[TreeDiagnostic, ...] = ()


class RejectionReason(str, Enum):
    OVERLAPS_EXISTING = "overlaps-existing"
    UNREADABLE = "unreadable"


@dataclass(frozen=True)
class Rejection:
    path: str
    reason: RejectionReason
    message: str
    conflict: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "reason": self.reason.value,
            "message": self.message,
            "conflict": self.conflict,
        }


@dataclass(frozen=True)
class AdmissionResult:
    admitted: tuple[str, ...] = ()
    rejected: tuple[Rejection, ...] = ()
    # Admitted paths whose build finished after a concurrent remove.
    discarded: tuple[str, ...] = ()
    diagnostics: dict[str, tuple[TreeDiagnostic, ...]] = field(default_factory=dict)

    @property
    def rejected_paths(self) -> tuple[str, ...]:
        return tuple(r.path for r in self.rejected)

    def to_dict(self) -> dict[str, Any]:
        return {
            "admitted": list(self.admitted),
            "rejected": [r.to_dict() for r in self.rejected],
            "discarded": list(self.discarded),
            "diagnostics": {
                path: [d.to_dict() for d in diags] for path, diags in self.diagnostics.items()
            },
        }


@dataclass(frozen=True)
class SyncFailure:
    path: str
    operation: str
    code: str
    error: str
    attempts: int = 1
    at_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "operation": self.operation,
            "code": self.code,
            "error": self.error,
            "attempts": self.attempts,
            "at_ms": self.at_ms,
        }


@dataclass(frozen=True)
class SyncReport:
    watched: tuple[str, ...] = ()
    unwatched: tuple[str, ...] = ()
    failures: dict[str, SyncFailure] = field(default_factory=dict)
    skipped: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "watched": list(self.watched),
            "unwatched": list(self.unwatched),
            "failures": {path: f.to_dict() for path, f in self.failures.items()},
            "skipped": list(self.skipped),
        }


class DirectoryLister(Protocol):
    """Filesystem listing service."""

    def list_directory(self, path: str) -> Awaitable[Result[list[DirectoryListingEntry]]]: ...


class WatchPersistence(Protocol):
    """Watch persistence service; durable source of truth for watched roots."""

    def watch(self, path: str) -> Awaitable[Result[bool]]: ...

    def unwatch(self, path: str) -> Awaitable[Result[bool]]: ...

    def list_watched(self) -> Awaitable[Result[list[str]]]: ...
