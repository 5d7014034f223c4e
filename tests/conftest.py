import asyncio
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from vrl_backend.features.directories.models import DirectoryListingEntry  # noqa: E402
from vrl_backend.shared import ErrorCode, Result  # noqa: E402


class FakeLister:
    """
    In-memory directory listing service.

    `tree` maps a directory path to its entries; plain strings are subdirectory
    names. Paths missing from `tree` (or listed in `unreadable`) fail to list.
    Setting `gates[path]` to an Event holds that listing until the event is set.
    """

    def __init__(self, tree=None):
        self.tree = {}
        for path, entries in (tree or {}).items():
            self.set(path, entries)
        self.unreadable = set()
        self.gates = {}
        self.calls = []

    def set(self, path, entries):
        self.tree[path] = [
            DirectoryListingEntry(e, True) if isinstance(e, str) else e for e in entries
        ]

    async def list_directory(self, path):
        self.calls.append(path)
        gate = self.gates.get(path)
        if gate is not None:
            await gate.wait()
        if path in self.unreadable or path not in self.tree:
            return Result.Err(ErrorCode.UNREADABLE, f"Cannot read {path}")
        return Result.Ok(list(self.tree[path]))


class FakePersistence:
    """
    In-memory watch persistence service.

    `fail[path]` makes watch/unwatch of that path return the given Result;
    `gate` (an Event) holds every command until set.
    """

    def __init__(self, watched=()):
        self.watched = list(watched)
        self.calls = []
        self.fail = {}
        self.gate = None
        self.list_error = None

    async def _command(self, op, path):
        self.calls.append((op, path))
        if self.gate is not None:
            await self.gate.wait()
        if path in self.fail:
            return self.fail[path]
        if op == "watch" and path not in self.watched:
            self.watched.append(path)
        if op == "unwatch" and path in self.watched:
            self.watched.remove(path)
        return Result.Ok(True)

    async def watch(self, path):
        return await self._command("watch", path)

    async def unwatch(self, path):
        return await self._command("unwatch", path)

    async def list_watched(self):
        if self.list_error is not None:
            return self.list_error
        return Result.Ok(list(self.watched))


async def wait_for(predicate, attempts=200):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def lister():
    return FakeLister()


@pytest.fixture
def persistence():
    return FakePersistence()


@pytest.fixture
def wait_until():
    return wait_for
