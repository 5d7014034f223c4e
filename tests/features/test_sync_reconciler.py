import asyncio

import pytest

from vrl_backend.features.directories import SyncReconciler, SyncReport
from vrl_backend.shared import ErrorCode, Result


def test_diff_against_snapshot(persistence):
    reconciler = SyncReconciler(persistence)
    reconciler.seed(["/a", "/b"])
    assert reconciler.diff(["/c", "/b", "/c"]) == (("/c",), ("/a",))
    assert reconciler.pending(["/b", "/c"]) == frozenset({"/a", "/c"})


@pytest.mark.asyncio
async def test_reconcile_issues_only_differences(persistence):
    reconciler = SyncReconciler(persistence)
    reconciler.seed(["/a", "/old"])

    res = await reconciler.reconcile(["/a", "/b"])
    assert res.ok
    assert sorted(persistence.calls) == [("unwatch", "/old"), ("watch", "/b")]
    assert res.data.watched == ("/b",)
    assert res.data.unwatched == ("/old",)
    assert reconciler.snapshot == frozenset({"/a", "/b"})


@pytest.mark.asyncio
async def test_nothing_to_do_issues_no_commands(persistence):
    reconciler = SyncReconciler(persistence)
    reconciler.seed(["/a"])
    res = await reconciler.reconcile(["/a"])
    assert res.data == SyncReport()
    assert persistence.calls == []


@pytest.mark.asyncio
async def test_failed_watch_stays_pending_and_is_retried(persistence):
    reconciler = SyncReconciler(persistence)
    persistence.fail["/b"] = Result.Err(ErrorCode.SYNC_FAILED, "disk full")

    first = await reconciler.reconcile(["/b", "/c"])
    assert first.ok
    assert first.data.watched == ("/c",)
    assert first.data.failures["/b"].attempts == 1
    assert first.data.failures["/b"].operation == "watch"
    assert reconciler.snapshot == frozenset({"/c"})
    assert reconciler.pending(["/b", "/c"]) == frozenset({"/b"})

    second = await reconciler.reconcile(["/b", "/c"])
    assert second.data.failures["/b"].attempts == 2
    assert reconciler.failures()["/b"].error == "disk full"

    del persistence.fail["/b"]
    third = await reconciler.reconcile(["/b", "/c"])
    assert third.data.watched == ("/b",)
    assert reconciler.failures() == {}
    assert persistence.calls.count(("watch", "/b")) == 3
    assert persistence.calls.count(("watch", "/c")) == 1


@pytest.mark.asyncio
async def test_failed_unwatch_keeps_path_in_snapshot(persistence):
    reconciler = SyncReconciler(persistence)
    reconciler.seed(["/gone"])
    persistence.fail["/gone"] = Result.Err(ErrorCode.SYNC_FAILED, "locked")

    res = await reconciler.reconcile([])
    assert res.data.failures["/gone"].operation == "unwatch"
    assert "/gone" in reconciler.snapshot


@pytest.mark.asyncio
async def test_failure_cleared_when_path_no_longer_differs(persistence):
    reconciler = SyncReconciler(persistence)
    persistence.fail["/b"] = Result.Err(ErrorCode.SYNC_FAILED, "nope")
    await reconciler.reconcile(["/b"])
    assert "/b" in reconciler.failures()

    await reconciler.reconcile([])
    assert reconciler.failures() == {}


@pytest.mark.asyncio
async def test_unreachable_service_fails_the_pass(persistence):
    reconciler = SyncReconciler(persistence)
    persistence.fail["/a"] = Result.Err(ErrorCode.SERVICE_UNAVAILABLE, "connection refused")

    res = await reconciler.reconcile(["/a"])
    assert not res.ok
    assert res.code == "SERVICE_UNAVAILABLE"
    report = res.meta["report"]
    assert isinstance(report, SyncReport)
    assert report.failures["/a"].code == "SERVICE_UNAVAILABLE"
    assert reconciler.snapshot == frozenset()


@pytest.mark.asyncio
async def test_raising_persistence_is_reported_as_sync_failure():
    class _Broken:
        async def watch(self, path):
            raise RuntimeError("socket closed")

        async def unwatch(self, path):
            raise RuntimeError("socket closed")

        async def list_watched(self):
            return Result.Ok([])

    reconciler = SyncReconciler(_Broken())
    res = await reconciler.reconcile(["/a"])
    assert res.ok
    failure = res.data.failures["/a"]
    assert failure.code == "SYNC_FAILED"
    assert "socket closed" in failure.error


@pytest.mark.asyncio
async def test_overlapping_passes_do_not_repeat_commands(persistence, wait_until):
    reconciler = SyncReconciler(persistence)
    persistence.gate = asyncio.Event()

    first = asyncio.create_task(reconciler.reconcile(["/a"]))
    await wait_until(lambda: persistence.calls)
    second = asyncio.create_task(reconciler.reconcile(["/a"]))
    await asyncio.sleep(0)
    persistence.gate.set()

    r1, r2 = await asyncio.gather(first, second)
    assert persistence.calls == [("watch", "/a")]
    assert r1.data.watched == ("/a",)
    assert r2.data.skipped == ("/a",)


@pytest.mark.asyncio
async def test_path_locks_are_released_after_each_pass(persistence, wait_until):
    reconciler = SyncReconciler(persistence)
    persistence.fail["/b"] = Result.Err(ErrorCode.SYNC_FAILED, "disk full")
    persistence.gate = asyncio.Event()

    first = asyncio.create_task(reconciler.reconcile(["/a", "/b"]))
    await wait_until(lambda: len(persistence.calls) == 2)
    assert set(reconciler._path_locks) == {"/a", "/b"}
    second = asyncio.create_task(reconciler.reconcile(["/a", "/b"]))
    await asyncio.sleep(0.01)
    persistence.gate.set()
    await asyncio.gather(first, second)
    assert reconciler._path_locks == {}

    await reconciler.reconcile([])
    assert reconciler._path_locks == {}
    assert reconciler.snapshot == frozenset()


@pytest.mark.asyncio
async def test_commands_are_bounded_by_max_concurrency():
    state = {"inflight": 0, "peak": 0}

    class _Slow:
        async def watch(self, path):
            state["inflight"] += 1
            state["peak"] = max(state["peak"], state["inflight"])
            await asyncio.sleep(0.01)
            state["inflight"] -= 1
            return Result.Ok(True)

        async def unwatch(self, path):
            return Result.Ok(True)

        async def list_watched(self):
            return Result.Ok([])

    reconciler = SyncReconciler(_Slow(), max_concurrency=2)
    res = await reconciler.reconcile([f"/r{i}" for i in range(6)])
    assert len(res.data.watched) == 6
    assert state["peak"] <= 2
