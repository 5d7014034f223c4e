"""
SyncReconciler - pushes local root changes to the watch persistence service.

The snapshot is the set of roots last confirmed by the service. A reconciliation
pass diffs the current roots against it and issues one watch/unwatch command per
differing path. Each path enters or leaves the snapshot only when its own command
succeeds, so a failed path is simply diffed again on the next pass.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from ...config import SYNC_MAX_CONCURRENCY
from ...shared import ErrorCode, Result, get_logger, log_structured, ms, sanitize_error_message
from ...utils import dedupe_preserving_order
from .models import SyncFailure, SyncReport, WatchPersistence

logger = get_logger(__name__)

WATCH = "watch"
UNWATCH = "unwatch"


@dataclass(frozen=True)
class _Outcome:
    path: str
    operation: str
    status: str  # "ok" | "skipped" | "failed"
    failure: Optional[SyncFailure] = None


class SyncReconciler:
    """Diffs current roots against the confirmed snapshot and issues minimal commands."""

    def __init__(self, persistence: WatchPersistence, *, max_concurrency: int = SYNC_MAX_CONCURRENCY):
        self._persistence = persistence
        self._snapshot: set[str] = set()
        self._failures: dict[str, SyncFailure] = {}
        # path -> (lock, number of commands holding or waiting on it)
        self._path_locks: dict[str, tuple[asyncio.Lock, int]] = {}
        self._semaphore = asyncio.Semaphore(max(1, int(max_concurrency)))

    @property
    def snapshot(self) -> frozenset[str]:
        return frozenset(self._snapshot)

    def seed(self, paths: Iterable[str]) -> None:
        """Set the confirmed snapshot, e.g. from the service's watched list at startup."""
        self._snapshot = set(paths)
        self._failures.clear()

    def failures(self) -> dict[str, SyncFailure]:
        return dict(self._failures)

    def pending(self, current_roots: Iterable[str]) -> frozenset[str]:
        """Soft-pending paths: present on one side only (local roots vs. confirmed snapshot)."""
        return frozenset(set(current_roots) ^ self._snapshot)

    def diff(self, current_roots: Iterable[str]) -> tuple[tuple[str, ...], tuple[str, ...]]:
        current = dedupe_preserving_order(current_roots)
        current_set = set(current)
        added = tuple(p for p in current if p not in self._snapshot)
        removed = tuple(p for p in sorted(self._snapshot) if p not in current_set)
        return added, removed

    async def reconcile(self, current_roots: Iterable[str]) -> Result[SyncReport]:
        """
        Run one reconciliation pass.

        Returns:
            Result.Ok(SyncReport), or Result.Err(SERVICE_UNAVAILABLE, report=...) when the
            persistence service itself could not be reached.
        """
        added, removed = self.diff(current_roots)
        differing = set(added) | set(removed)
        for path in list(self._failures):
            if path not in differing:
                del self._failures[path]

        if not differing:
            return Result.Ok(SyncReport())

        outcomes = await asyncio.gather(
            *(self._run(path, WATCH) for path in added),
            *(self._run(path, UNWATCH) for path in removed),
        )
        report = _build_report(outcomes)

        log_structured(
            logger,
            logging.INFO if report.ok else logging.WARNING,
            "Watched directories reconciled",
            watched=list(report.watched),
            unwatched=list(report.unwatched),
            failed=sorted(report.failures),
            skipped=list(report.skipped),
        )

        unreachable = [f for f in report.failures.values() if f.code == ErrorCode.SERVICE_UNAVAILABLE.value]
        if unreachable:
            return Result.Err(
                ErrorCode.SERVICE_UNAVAILABLE,
                "Watch persistence service is unreachable",
                report=report,
            )
        return Result.Ok(report)

    async def _run(self, path: str, operation: str) -> _Outcome:
        lock, users = self._path_locks.get(path) or (asyncio.Lock(), 0)
        self._path_locks[path] = (lock, users + 1)
        try:
            async with lock:
                return await self._run_locked(path, operation)
        finally:
            _, users = self._path_locks[path]
            if users <= 1:
                del self._path_locks[path]
            else:
                self._path_locks[path] = (lock, users - 1)

    async def _run_locked(self, path: str, operation: str) -> _Outcome:
        # An earlier command for this path may already have converged it.
        if (path in self._snapshot) == (operation == WATCH):
            return _Outcome(path, operation, "skipped")

        async with self._semaphore:
            res = await self._issue(path, operation)

        if res.ok:
            if operation == WATCH:
                self._snapshot.add(path)
            else:
                self._snapshot.discard(path)
            self._failures.pop(path, None)
            return _Outcome(path, operation, "ok")

        previous = self._failures.get(path)
        attempts = previous.attempts + 1 if previous and previous.operation == operation else 1
        failure = SyncFailure(
            path=path,
            operation=operation,
            code=str(res.code or ErrorCode.SYNC_FAILED.value),
            error=str(res.error or f"{operation} failed"),
            attempts=attempts,
            at_ms=ms(),
        )
        self._failures[path] = failure
        logger.warning("%s failed for %s (attempt %d): %s", operation, path, attempts, failure.error)
        return _Outcome(path, operation, "failed", failure)

    async def _issue(self, path: str, operation: str) -> Result[bool]:
        try:
            if operation == WATCH:
                return await self._persistence.watch(path)
            return await self._persistence.unwatch(path)
        except Exception as exc:
            logger.debug("%s raised for %s", operation, path, exc_info=True)
            return Result.Err(ErrorCode.SYNC_FAILED, sanitize_error_message(exc, f"{operation} failed"))


def _build_report(outcomes: Iterable[_Outcome]) -> SyncReport:
    watched: list[str] = []
    unwatched: list[str] = []
    skipped: list[str] = []
    failures: dict[str, SyncFailure] = {}
    for outcome in outcomes:
        if outcome.status == "ok":
            (watched if outcome.operation == WATCH else unwatched).append(outcome.path)
        elif outcome.status == "skipped":
            skipped.append(outcome.path)
        elif outcome.failure is not None:
            failures[outcome.path] = outcome.failure
    return SyncReport(
        watched=tuple(watched),
        unwatched=tuple(unwatched),
        failures=failures,
        skipped=tuple(skipped),
    )
