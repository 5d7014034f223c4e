"""
Directory structure watcher for watched roots.

Only directory-level events matter here (a subdirectory created, deleted or
renamed changes the tree); file churn is ignored. Events arrive on the watchdog
observer thread, are mapped to the innermost watched root and debounced per root
on the event loop before `on_change(root)` is awaited.
"""

from __future__ import annotations

import asyncio
import os
import threading
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from ...config import WATCHER_DEBOUNCE_MS
from ...path_utils import PathPolicy, default_policy
from ...shared import get_logger

logger = get_logger(__name__)


class DirectoryEventHandler(FileSystemEventHandler):
    """Forwards directory create/delete/move paths to `on_path` (observer thread)."""

    def __init__(self, on_path: Callable[[str], None]):
        super().__init__()
        self._on_path = on_path

    def on_created(self, event):
        if getattr(event, "is_directory", False):
            self._on_path(str(event.src_path))

    def on_deleted(self, event):
        if getattr(event, "is_directory", False):
            self._on_path(str(event.src_path))

    def on_moved(self, event):
        if not getattr(event, "is_directory", False):
            return
        self._on_path(str(event.src_path))
        dest = getattr(event, "dest_path", None)
        if dest:
            self._on_path(str(dest))


class DirectoryChangeNotifier:
    """
    Usage:
        notifier = DirectoryChangeNotifier(service.handle_structure_change)
        notifier.start()
        notifier.watch("/refs/anatomy")
        ...
        await notifier.stop()
    """

    def __init__(
        self,
        on_change: Callable[[str], Awaitable[Any]],
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        debounce_ms: int = WATCHER_DEBOUNCE_MS,
        policy: Optional[PathPolicy] = None,
        observer_factory: Callable[[], Any] = Observer,
    ):
        self._on_change = on_change
        self._loop = loop
        self._debounce_s = max(0, int(debounce_ms)) / 1000.0
        self._policy = policy or default_policy()
        self._observer_factory = observer_factory
        self._observer: Any | None = None
        self._handler = DirectoryEventHandler(self._on_event_path)
        self._lock = threading.Lock()
        self._watches: dict[str, Any] = {}
        # Loop-thread only.
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        if self._observer is not None:
            return
        self._loop = loop or self._loop or asyncio.get_event_loop()
        observer = self._observer_factory()
        try:
            observer.daemon = True
        except AttributeError:
            pass
        observer.start()
        self._observer = observer
        logger.info("Directory watcher started")

    def watch(self, root: str) -> bool:
        """Watch `root` recursively; returns False when it cannot be watched."""
        key = self._policy.normalize(root)
        if not key:
            return False
        if self._observer is None:
            self.start()
        with self._lock:
            if key in self._watches:
                return True
        if not os.path.isdir(key):
            logger.debug("Not watching missing directory: %s", key)
            return False
        try:
            handle = self._observer.schedule(self._handler, key, recursive=True)
        except (OSError, RuntimeError) as exc:
            logger.warning("Failed to watch %s: %s", key, exc)
            return False
        with self._lock:
            self._watches[key] = handle
        logger.info("Watcher added: %s", key)
        return True

    def unwatch(self, root: str) -> bool:
        key = self._policy.normalize(root)
        with self._lock:
            handle = self._watches.pop(key, None)
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        if handle is None:
            return False
        if self._observer is not None:
            try:
                self._observer.unschedule(handle)
            except (KeyError, OSError, RuntimeError) as exc:
                logger.debug("Watcher unschedule error for %s: %s", key, exc)
        logger.info("Watcher removed: %s", key)
        return True

    def watched_roots(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._watches))

    def root_for(self, path: str) -> Optional[str]:
        """Innermost watched root containing `path`."""
        key = self._policy.normalize(path)
        with self._lock:
            candidates = [root for root in self._watches if self._policy.is_ancestor_or_self(root, key)]
        if not candidates:
            return None
        return max(candidates, key=lambda root: len(self._policy.segments(root)))

    async def stop(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

        observer, self._observer = self._observer, None
        with self._lock:
            self._watches.clear()
        if observer is not None:
            try:
                observer.stop()
                await asyncio.to_thread(observer.join, 2.0)
            except RuntimeError as exc:
                logger.debug("Watcher stop error: %s", exc)

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Directory watcher stopped")

    def _on_event_path(self, path: str) -> None:
        root = self.root_for(path)
        loop = self._loop
        if root is None or loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._schedule, root)

    def _schedule(self, root: str) -> None:
        timer = self._timers.pop(root, None)
        if timer is not None:
            timer.cancel()
        with self._lock:
            if root not in self._watches:
                return
        self._timers[root] = self._loop.call_later(self._debounce_s, self._fire, root)

    def _fire(self, root: str) -> None:
        self._timers.pop(root, None)
        task = self._loop.create_task(self._dispatch(root))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _dispatch(self, root: str) -> None:
        try:
            await self._on_change(root)
        except Exception as exc:
            logger.warning("Directory change handler failed for %s: %s", root, exc)
