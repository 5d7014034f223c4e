"""
WatchedDirectoryRegistry - the user's set of watched roots and their trees.

Invariant: no root is an ancestor or descendant of another root. It is checked
when candidates are admitted, never repaired afterwards.

Admission runs in three steps: reserve (under the lock), build trees (outside the
lock, so a remove is never blocked by a slow build), install (under the lock).
Every reservation and rebuild carries a generation token; a result whose token
no longer matches the path's current token is discarded as stale.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable, Iterable
from typing import Optional

from ...shared import ErrorCode, Result, get_logger
from .models import (
    AdmissionResult,
    BuiltTree,
    DirectoryTreeNode,
    Rejection,
    RejectionReason,
    TreeDiagnostic,
)
from .selection import SelectionSet
from .tree_builder import DirectoryTreeBuilder

logger = get_logger(__name__)

RootsListener = Callable[[tuple[str, ...]], None]


class WatchedDirectoryRegistry:
    """Owns the watched root set, in-flight admissions and the node selection."""

    def __init__(self, builder: DirectoryTreeBuilder, *, selection: Optional[SelectionSet] = None):
        self._builder = builder
        self._policy = builder.policy
        self._roots: dict[str, DirectoryTreeNode] = {}  # insertion order is display order
        self._diagnostics: dict[str, tuple[TreeDiagnostic, ...]] = {}
        self._reserved: dict[str, int] = {}  # path -> generation of the pending admission build
        self._generations: dict[str, int] = {}
        self._counter = itertools.count(1)
        self._lock = asyncio.Lock()
        self._selection = selection or SelectionSet()
        self._listeners: list[RootsListener] = []

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def policy(self):
        return self._policy

    @property
    def selection(self) -> frozenset[str]:
        return self._selection.items

    def snapshot(self) -> tuple[str, ...]:
        """Installed root paths in display order."""
        return tuple(self._roots)

    def trees(self) -> tuple[DirectoryTreeNode, ...]:
        return tuple(self._roots.values())

    def tree(self, root_path: str) -> Optional[DirectoryTreeNode]:
        return self._roots.get(self._policy.normalize(root_path))

    def diagnostics(self, root_path: str) -> tuple[TreeDiagnostic, ...]:
        return self._diagnostics.get(self._policy.normalize(root_path), ())

    def pending_builds(self) -> tuple[str, ...]:
        return tuple(self._reserved)

    def root_for(self, path: str) -> Optional[str]:
        """Installed root containing `path`, if any."""
        normalized = self._policy.normalize(path)
        for root in self._roots:
            if self._policy.is_ancestor_or_self(root, normalized):
                return root
        return None

    def node_ids(self) -> frozenset[str]:
        ids: set[str] = set()
        for node in self._roots.values():
            ids.update(node.iter_ids())
        return frozenset(ids)

    def __contains__(self, root_path: object) -> bool:
        return isinstance(root_path, str) and self._policy.normalize(root_path) in self._roots

    def __len__(self) -> int:
        return len(self._roots)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: RootsListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        roots = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(roots)
            except Exception:
                logger.debug("Registry listener failed", exc_info=True)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def propose_add(self, candidates: Iterable[str]) -> AdmissionResult:
        """
        Admit every candidate that does not overlap a root (installed, in flight,
        or admitted earlier in this call), then build and install their trees.

        Returns:
            AdmissionResult with admitted paths in input order and per-path rejections.
        """
        rejected: list[Rejection] = []
        accepted: list[tuple[str, int]] = []

        async with self._lock:
            occupied = list(self._roots) + list(self._reserved)
            for raw in candidates:
                path = self._policy.normalize(raw)
                if not path:
                    rejected.append(Rejection(str(raw), RejectionReason.UNREADABLE, "Empty directory path"))
                    continue
                conflict = self._classify_conflict(path, occupied)
                if conflict is not None:
                    other, message = conflict
                    rejected.append(Rejection(path, RejectionReason.OVERLAPS_EXISTING, message, conflict=other))
                    continue
                gen = next(self._counter)
                self._generations[path] = gen
                self._reserved[path] = gen
                occupied.append(path)
                accepted.append((path, gen))

        if rejected:
            logger.info("Rejected %d candidate director%s", len(rejected), "y" if len(rejected) == 1 else "ies")

        try:
            results = await asyncio.gather(
                *(self._builder.build(path) for path, _ in accepted),
                return_exceptions=True,
            )
        except asyncio.CancelledError:
            self._release(accepted)
            raise

        admitted: list[str] = []
        discarded: list[str] = []
        diagnostics: dict[str, tuple[TreeDiagnostic, ...]] = {}
        async with self._lock:
            for (path, gen), res in zip(accepted, results):
                if self._reserved.get(path) != gen:
                    logger.debug("Discarding stale build for %s", path)
                    discarded.append(path)
                    continue
                del self._reserved[path]
                if isinstance(res, BaseException) or not res.ok:
                    self._generations.pop(path, None)
                    error = str(res) if isinstance(res, BaseException) else (res.error or "Unreadable directory")
                    logger.warning("Directory not added, unreadable: %s (%s)", path, error)
                    rejected.append(Rejection(path, RejectionReason.UNREADABLE, error))
                    continue
                built: BuiltTree = res.data
                self._roots[path] = built.node
                self._diagnostics[path] = built.diagnostics
                diagnostics[path] = built.diagnostics
                admitted.append(path)

        if admitted:
            logger.info("Added %d watched root(s)", len(admitted))
            self._notify()
        return AdmissionResult(
            admitted=tuple(admitted),
            rejected=tuple(rejected),
            discarded=tuple(discarded),
            diagnostics=diagnostics,
        )

    async def remove(self, root_path: str) -> Result[bool]:
        """Remove a root (or cancel its pending admission) and drop selections beneath it."""
        path = self._policy.normalize(root_path)
        async with self._lock:
            installed = path in self._roots
            pending = path in self._reserved
            if not installed and not pending:
                return Result.Err(ErrorCode.NOT_FOUND, f"Not a watched root: {path}")
            self._roots.pop(path, None)
            self._diagnostics.pop(path, None)
            self._reserved.pop(path, None)
            self._generations.pop(path, None)
            dropped = self._selection.discard_under(path, self._policy)

        logger.info("Removed watched root %s%s", path, " (build pending)" if pending else "")
        if installed:
            self._notify()
        return Result.Ok(True, dropped_selection=sorted(dropped), was_pending=pending)

    async def rebuild(self, root_path: str) -> Result[BuiltTree]:
        """Rebuild a root's whole subtree after a structural change beneath it."""
        path = self._policy.normalize(root_path)
        async with self._lock:
            if path not in self._roots:
                return Result.Err(ErrorCode.NOT_FOUND, f"Not a watched root: {path}")
            gen = next(self._counter)
            self._generations[path] = gen

        res = await self._builder.build(path)

        async with self._lock:
            if self._generations.get(path) != gen or path not in self._roots:
                logger.debug("Discarding stale rebuild for %s", path)
                return Result.Err(ErrorCode.STALE, f"Rebuild superseded: {path}")
            if not res.ok or res.data is None:
                logger.warning("Rebuild failed for %s: %s", path, res.error)
                return res
            node = res.data.node
            self._roots[path] = node
            self._diagnostics[path] = res.data.diagnostics
            live = frozenset(node.iter_ids())
            dropped = self._selection.retain(
                lambda node_id: node_id in live or not self._policy.is_ancestor_or_self(path, node_id)
            )

        if dropped:
            logger.debug("Rebuild of %s dropped %d selected node(s)", path, len(dropped))
        self._notify()
        return res

    def select(self, node_ids: Iterable[str]) -> tuple[str, ...]:
        """Replace the selection with the given ids; returns the ids not found in any tree."""
        known = self.node_ids()
        keep: list[str] = []
        ignored: list[str] = []
        for raw in node_ids:
            node_id = self._policy.normalize(raw)
            (keep if node_id in known else ignored).append(node_id)
        self._selection.replace(keep)
        return tuple(ignored)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _classify_conflict(self, path: str, occupied: list[str]) -> Optional[tuple[str, str]]:
        if path in occupied:
            return path, f"Already watched: {path}"
        for other in occupied:
            if self._policy.is_ancestor_or_self(other, path):
                return other, f"Inside watched directory {other}"
        for other in occupied:
            if self._policy.is_ancestor_or_self(path, other):
                return other, f"Contains watched directory {other}"
        return None

    def _release(self, accepted: list[tuple[str, int]]) -> None:
        for path, gen in accepted:
            if self._reserved.get(path) == gen:
                del self._reserved[path]
                self._generations.pop(path, None)
