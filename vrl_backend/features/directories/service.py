"""
Watched directories service: registry + reconciler + selection projection.

This is the narrow API the UI surfaces and the event pump talk to; none of them
get mutable access to the underlying root set, snapshot or selection.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any, Optional, Protocol

from ...shared import ErrorCode, Result, get_logger, log_success
from .models import BuiltTree, Rejection, SyncReport, WatchPersistence
from .registry import RootsListener, WatchedDirectoryRegistry
from .selection import SelectionProjector
from .sync import SyncReconciler

logger = get_logger(__name__)


class ChangeNotifier(Protocol):
    def watch(self, root: str) -> bool: ...

    def unwatch(self, root: str) -> bool: ...

    async def stop(self) -> None: ...


class WatchedDirectoriesService:
    def __init__(
        self,
        registry: WatchedDirectoryRegistry,
        reconciler: SyncReconciler,
        persistence: WatchPersistence,
        *,
        projector: Optional[SelectionProjector] = None,
        notifier: Optional[ChangeNotifier] = None,
    ):
        self._registry = registry
        self._reconciler = reconciler
        self._persistence = persistence
        self._projector = projector or SelectionProjector()
        self._notifier = notifier
        self._last_rejections: tuple[Rejection, ...] = ()

    @property
    def registry(self) -> WatchedDirectoryRegistry:
        return self._registry

    @property
    def reconciler(self) -> SyncReconciler:
        return self._reconciler

    def attach_notifier(self, notifier: ChangeNotifier) -> None:
        self._notifier = notifier
        for root in self._registry.snapshot():
            notifier.watch(root)

    def subscribe(self, listener: RootsListener) -> Callable[[], None]:
        return self._registry.subscribe(listener)

    async def start(self) -> Result[dict]:
        """Seed the registry from the persistence service's watched list."""
        listed = await self._persistence.list_watched()
        if not listed.ok:
            logger.error("Failed to load watched directories: %s", listed.error)
            return Result.Err(listed.code or ErrorCode.SERVICE_UNAVAILABLE, listed.error or "Failed to load watched directories")

        admission = await self._registry.propose_add(listed.data or [])
        # Only roots that were rebuilt count as confirmed; the others stay
        # persisted untouched (e.g. an offline drive) rather than being unwatched.
        self._reconciler.seed(admission.admitted)
        self._last_rejections = admission.rejected
        for root in admission.admitted:
            self._watch_changes(root)
        if admission.rejected:
            logger.warning(
                "%d persisted director%s could not be loaded",
                len(admission.rejected),
                "y" if len(admission.rejected) == 1 else "ies",
            )
        log_success(logger, f"Loaded {len(admission.admitted)} watched director{'y' if len(admission.admitted) == 1 else 'ies'}")
        return Result.Ok(admission.to_dict())

    async def stop(self) -> None:
        if self._notifier is not None:
            await self._notifier.stop()

    async def add(self, paths: Iterable[str]) -> Result[dict]:
        admission = await self._registry.propose_add(paths)
        self._last_rejections = admission.rejected
        for root in admission.admitted:
            self._watch_changes(root)
        sync = await self.sync()
        return _with_sync({"admission": admission.to_dict()}, sync)

    async def remove(self, path: str) -> Result[dict]:
        removed = await self._registry.remove(path)
        if not removed.ok:
            return removed.propagate("Failed to remove directory")
        self._unwatch_changes(self._registry.policy.normalize(path))
        sync = await self.sync()
        payload = {
            "removed": self._registry.policy.normalize(path),
            "dropped_selection": removed.meta.get("dropped_selection", []),
        }
        return _with_sync(payload, sync)

    async def sync(self) -> Result[SyncReport]:
        return await self._reconciler.reconcile(self._registry.snapshot())

    def select(self, node_ids: Iterable[str]) -> dict[str, Any]:
        ignored = self._registry.select(node_ids)
        return {
            "selected": sorted(self._registry.selection),
            "ignored": list(ignored),
            "prefixes": list(self.search_prefixes()),
        }

    def search_prefixes(self) -> tuple[str, ...]:
        return self._projector.project(self._registry.selection)

    async def handle_structure_change(self, path: str) -> Result[BuiltTree]:
        """Rebuild the root containing `path` after an add/remove/rename beneath it."""
        root = self._registry.root_for(path)
        if root is None:
            logger.debug("Structure change outside watched roots ignored: %s", path)
            return Result.Err(ErrorCode.NOT_FOUND, f"Not under a watched root: {path}")
        return await self._registry.rebuild(root)

    def state(self) -> dict[str, Any]:
        """JSON-ready copy of everything a UI surface displays."""
        roots = self._registry.snapshot()
        pending = self._reconciler.pending(roots)
        failures = self._reconciler.failures()
        return {
            "roots": [
                {
                    "path": node.id,
                    "synced": node.id not in pending,
                    "tree": node.to_dict(),
                    "diagnostics": [d.to_dict() for d in self._registry.diagnostics(node.id)],
                    "sync_error": failures[node.id].to_dict() if node.id in failures else None,
                }
                for node in self._registry.trees()
            ],
            "pending_builds": list(self._registry.pending_builds()),
            "pending_removals": sorted(p for p in pending if p not in roots),
            "sync_failures": {path: f.to_dict() for path, f in failures.items()},
            "rejections": [r.to_dict() for r in self._last_rejections],
            "selection": sorted(self._registry.selection),
            "prefixes": list(self.search_prefixes()),
        }

    def _watch_changes(self, root: str) -> None:
        if self._notifier is None:
            return
        if not self._notifier.watch(root):
            logger.debug("Change notifications unavailable for %s", root)

    def _unwatch_changes(self, root: str) -> None:
        if self._notifier is not None:
            self._notifier.unwatch(root)


def _with_sync(payload: dict[str, Any], sync: Result[SyncReport]) -> Result[dict]:
    report = sync.data if sync.ok else sync.meta.get("report")
    payload["sync"] = report.to_dict() if isinstance(report, SyncReport) else None
    if not sync.ok:
        return Result.Err(sync.code, sync.error or "Synchronization failed", **payload)
    return Result.Ok(payload)
