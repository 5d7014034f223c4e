import asyncio

import pytest
from watchdog.events import DirCreatedEvent, DirDeletedEvent, DirMovedEvent, FileCreatedEvent

from vrl_backend.adapters.watch import DirectoryChangeNotifier
from vrl_backend.path_utils import POSIX_POLICY


class _FakeObserver:
    def __init__(self):
        self.started = False
        self.stopped = False
        self.joined = False
        self.scheduled = []
        self.unscheduled = []

    def schedule(self, handler, path, recursive=True):
        watch = {"handler": handler, "path": path, "recursive": recursive}
        self.scheduled.append(watch)
        return watch

    def unschedule(self, watch):
        self.unscheduled.append(watch)

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=0):
        _ = timeout
        self.joined = True


@pytest.fixture
def roots(tmp_path):
    a = tmp_path / "a"
    b = tmp_path / "b"
    (a / "sub").mkdir(parents=True)
    b.mkdir()
    return str(a), str(b)


def _notifier(changes, observer, debounce_ms=20):
    async def _on_change(root):
        changes.append(root)

    return DirectoryChangeNotifier(
        _on_change,
        loop=asyncio.get_running_loop(),
        debounce_ms=debounce_ms,
        policy=POSIX_POLICY,
        observer_factory=lambda: observer,
    )


@pytest.mark.asyncio
async def test_watch_schedules_recursive_watch(roots, tmp_path):
    observer = _FakeObserver()
    notifier = _notifier([], observer)
    a, _ = roots

    assert notifier.watch(a)
    assert notifier.watch(a)
    assert observer.started
    assert [(w["path"], w["recursive"]) for w in observer.scheduled] == [(a, True)]
    assert notifier.watched_roots() == (a,)
    assert not notifier.watch(str(tmp_path / "missing"))


@pytest.mark.asyncio
async def test_directory_events_are_debounced_per_root(roots):
    observer = _FakeObserver()
    changes = []
    notifier = _notifier(changes, observer)
    a, b = roots
    notifier.watch(a)
    notifier.watch(b)
    handler = observer.scheduled[0]["handler"]

    handler.on_created(DirCreatedEvent(f"{a}/new1"))
    handler.on_created(DirCreatedEvent(f"{a}/sub/new2"))
    handler.on_deleted(DirDeletedEvent(f"{a}/sub"))
    handler.on_created(DirCreatedEvent(f"{b}/other"))
    await asyncio.sleep(0.15)

    assert sorted(changes) == sorted([a, b])
    await notifier.stop()


@pytest.mark.asyncio
async def test_file_events_are_ignored(roots):
    observer = _FakeObserver()
    changes = []
    notifier = _notifier(changes, observer)
    a, _ = roots
    notifier.watch(a)

    observer.scheduled[0]["handler"].on_created(FileCreatedEvent(f"{a}/sheet.png"))
    await asyncio.sleep(0.08)
    assert changes == []


@pytest.mark.asyncio
async def test_move_between_roots_notifies_both(roots):
    observer = _FakeObserver()
    changes = []
    notifier = _notifier(changes, observer)
    a, b = roots
    notifier.watch(a)
    notifier.watch(b)

    observer.scheduled[0]["handler"].on_moved(DirMovedEvent(f"{a}/sub", f"{b}/sub"))
    await asyncio.sleep(0.15)
    assert sorted(changes) == sorted([a, b])


@pytest.mark.asyncio
async def test_events_outside_watched_roots_are_dropped(roots, tmp_path):
    observer = _FakeObserver()
    changes = []
    notifier = _notifier(changes, observer)
    a, _ = roots
    notifier.watch(a)

    assert notifier.root_for(f"{a}/sub/deep") == a
    assert notifier.root_for(f"{a}bc") is None
    observer.scheduled[0]["handler"].on_created(DirCreatedEvent(str(tmp_path / "elsewhere")))
    await asyncio.sleep(0.08)
    assert changes == []


@pytest.mark.asyncio
async def test_unwatch_cancels_pending_notification(roots):
    observer = _FakeObserver()
    changes = []
    notifier = _notifier(changes, observer, debounce_ms=50)
    a, _ = roots
    notifier.watch(a)

    observer.scheduled[0]["handler"].on_created(DirCreatedEvent(f"{a}/new"))
    await asyncio.sleep(0)
    assert notifier.unwatch(a)
    assert not notifier.unwatch(a)
    await asyncio.sleep(0.12)

    assert changes == []
    assert observer.unscheduled == observer.scheduled
    assert notifier.watched_roots() == ()


@pytest.mark.asyncio
async def test_failing_callback_is_contained(roots):
    observer = _FakeObserver()
    calls = []

    async def _boom(root):
        calls.append(root)
        raise RuntimeError("rebuild failed")

    a, _ = roots
    notifier = DirectoryChangeNotifier(
        _boom,
        loop=asyncio.get_running_loop(),
        debounce_ms=10,
        policy=POSIX_POLICY,
        observer_factory=lambda: observer,
    )
    notifier.watch(a)
    observer.scheduled[0]["handler"].on_created(DirCreatedEvent(f"{a}/new"))
    await asyncio.sleep(0.1)
    assert calls == [a]


@pytest.mark.asyncio
async def test_stop_stops_observer(roots):
    observer = _FakeObserver()
    notifier = _notifier([], observer)
    notifier.watch(roots[0])

    await notifier.stop()
    assert observer.stopped and observer.joined
    assert not notifier.running
    assert notifier.watched_roots() == ()
