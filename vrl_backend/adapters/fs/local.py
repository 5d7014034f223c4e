"""
In-process directory listing for the tree builder.

`os.scandir` runs on a worker thread so the event loop never blocks on slow or
network-mounted filesystems.
"""

from __future__ import annotations

import asyncio
import os
import stat

from ...config import TREE_FOLLOW_SYMLINKS, TREE_INCLUDE_HIDDEN
from ...features.directories.models import DirectoryListingEntry
from ...shared import ErrorCode, Result, get_logger

logger = get_logger(__name__)


def _is_hidden(entry: os.DirEntry) -> bool:
    if entry.name.startswith("."):
        return True
    if os.name == "nt":
        try:
            attrs = entry.stat(follow_symlinks=False).st_file_attributes  # type: ignore[attr-defined]
            return bool(attrs & stat.FILE_ATTRIBUTE_HIDDEN)  # type: ignore[attr-defined]
        except OSError:
            return False
    return False


class LocalDirectoryLister:
    """Lists directories straight from the local filesystem."""

    def __init__(self, *, follow_symlinks: bool = TREE_FOLLOW_SYMLINKS, include_hidden: bool = TREE_INCLUDE_HIDDEN):
        self._follow_symlinks = follow_symlinks
        self._include_hidden = include_hidden

    async def list_directory(self, path: str) -> Result[list[DirectoryListingEntry]]:
        return await asyncio.to_thread(self._list_sync, path)

    def _list_sync(self, path: str) -> Result[list[DirectoryListingEntry]]:
        entries: list[DirectoryListingEntry] = []
        try:
            with os.scandir(path) as it:
                for entry in it:
                    listed = self._entry(entry)
                    if listed is not None:
                        entries.append(listed)
        except OSError as exc:
            logger.debug("Cannot list %s: %s", path, exc)
            return Result.Err(ErrorCode.UNREADABLE, f"Cannot read directory {path}: {exc.strerror or exc}")
        return Result.Ok(entries)

    def _entry(self, entry: os.DirEntry) -> DirectoryListingEntry | None:
        if not self._include_hidden and _is_hidden(entry):
            return None
        try:
            if entry.is_symlink():
                if not self._follow_symlinks:
                    return None
                is_dir = entry.is_dir(follow_symlinks=True)
                real_path = os.path.realpath(entry.path) if is_dir else None
                return DirectoryListingEntry(entry.name, is_dir, real_path)
            return DirectoryListingEntry(entry.name, entry.is_dir(follow_symlinks=False))
        except OSError:
            # Entry vanished or is inaccessible between listing and stat.
            return None
