"""
Dependency injection - builds services.
Simple, debug-friendly DI without framework magic.
"""

from __future__ import annotations

from typing import Any, Optional

from .adapters.bridge import BridgeClient
from .adapters.fs import LocalDirectoryLister
from .adapters.watch import DirectoryChangeNotifier
from .config import LISTING_BACKEND, WATCHER_ENABLED
from .features.directories import (
    DirectoryTreeBuilder,
    SyncReconciler,
    WatchedDirectoriesService,
    WatchedDirectoryRegistry,
)
from .features.directories.models import DirectoryLister, WatchPersistence
from .features.tasks import TaskStatusTracker
from .shared import Result, get_logger, log_success

logger = get_logger(__name__)


def _select_lister(bridge: BridgeClient, lister: Optional[DirectoryLister]) -> DirectoryLister:
    if lister is not None:
        return lister
    if LISTING_BACKEND == "bridge":
        return bridge
    return LocalDirectoryLister()


def _build_notifier(directories: WatchedDirectoriesService, *, enabled: bool) -> Optional[DirectoryChangeNotifier]:
    # watchdog only sees the local filesystem.
    if not enabled or LISTING_BACKEND != "local":
        return None
    notifier = DirectoryChangeNotifier(directories.handle_structure_change, policy=directories.registry.policy)
    directories.attach_notifier(notifier)
    return notifier


async def build_services(
    *,
    lister: Optional[DirectoryLister] = None,
    persistence: Optional[WatchPersistence] = None,
    bridge: Optional[BridgeClient] = None,
    watcher_enabled: bool = WATCHER_ENABLED,
    start: bool = True,
) -> Result[dict[str, Any]]:
    """
    Build and start the service graph.

    A failed startup load (indexing service offline) is logged and reported in
    meta; the services stay usable and surface the error per request.
    """
    bridge = bridge or BridgeClient()
    lister = _select_lister(bridge, lister)
    persistence = persistence or bridge

    builder = DirectoryTreeBuilder(lister)
    registry = WatchedDirectoryRegistry(builder)
    reconciler = SyncReconciler(persistence)
    directories = WatchedDirectoriesService(registry, reconciler, persistence)
    notifier = _build_notifier(directories, enabled=watcher_enabled)
    tasks = TaskStatusTracker()

    services: dict[str, Any] = {
        "bridge": bridge,
        "lister": lister,
        "persistence": persistence,
        "tree_builder": builder,
        "registry": registry,
        "reconciler": reconciler,
        "directories": directories,
        "notifier": notifier,
        "tasks": tasks,
    }

    if not start:
        return Result.Ok(services)

    started = await directories.start()
    if not started.ok:
        logger.warning("Watched directories not loaded at startup: %s", started.error)
        return Result.Ok(services, startup_error=started.error, startup_code=started.code)
    log_success(logger, "Services initialized")
    return Result.Ok(services)


async def dispose_services(services: dict[str, Any]) -> None:
    """Stop watchers and close the bridge session; each step is independent."""
    directories = services.get("directories")
    if directories is not None:
        try:
            await directories.stop()
        except (OSError, RuntimeError) as exc:
            logger.warning("Error stopping directory watcher: %s", exc)
    bridge = services.get("bridge")
    if bridge is not None:
        await bridge.close()
