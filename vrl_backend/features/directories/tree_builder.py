"""
DirectoryTreeBuilder - mirrors a watched root's directory hierarchy.

Listings come from an injected `DirectoryLister` (local scandir or the bridge).
Subdirectories that cannot be listed are skipped and reported as diagnostics;
only a failure to list the root itself fails the build.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from ...config import TREE_LIST_CONCURRENCY, TREE_MAX_DEPTH
from ...path_utils import PathPolicy, default_policy
from ...shared import ErrorCode, Result, get_logger, timer
from .models import (
    BuiltTree,
    DirectoryListingEntry,
    DirectoryLister,
    DirectoryTreeNode,
    TreeDiagnostic,
)

logger = get_logger(__name__)


@dataclass
class _BuildState:
    """Per-call bookkeeping; never shared between two builds."""

    semaphore: asyncio.Semaphore
    diagnostics: list[TreeDiagnostic] = field(default_factory=list)


class DirectoryTreeBuilder:
    """
    Builds `DirectoryTreeNode` trees from directory listings.

    Usage:
        builder = DirectoryTreeBuilder(LocalDirectoryLister())
        res = await builder.build("/refs/anatomy")
        if res.ok:
            tree = res.data.node
    """

    def __init__(
        self,
        lister: DirectoryLister,
        *,
        policy: PathPolicy | None = None,
        max_depth: int = TREE_MAX_DEPTH,
        list_concurrency: int = TREE_LIST_CONCURRENCY,
    ):
        self._lister = lister
        self._policy = policy or default_policy()
        self._max_depth = max(1, int(max_depth))
        self._list_concurrency = max(1, int(list_concurrency))

    @property
    def policy(self) -> PathPolicy:
        return self._policy

    async def build(self, root_path: str) -> Result[BuiltTree]:
        """Build the tree under `root_path`; Err(UNREADABLE) only if the root cannot be listed."""
        root = self._policy.normalize(root_path)
        if not root:
            return Result.Err(ErrorCode.INVALID_INPUT, "Empty directory path")

        state = _BuildState(semaphore=asyncio.Semaphore(self._list_concurrency))
        with timer(f"Tree build for {root}", logger):
            listing = await self._list(root, state)
            if not listing.ok:
                logger.debug("Root listing failed for %s: %s", root, listing.error)
                return Result.Err(
                    ErrorCode.UNREADABLE,
                    listing.error or f"Unable to read directory: {root}",
                    path=root,
                )
            children = await self._build_children(root, root, listing.data or [], 1, state, frozenset({root}))

        node = DirectoryTreeNode(id=root, label=self._policy.basename(root), children=children)
        if state.diagnostics:
            logger.debug("Built %s with %d diagnostic(s)", root, len(state.diagnostics))
        return Result.Ok(BuiltTree(node=node, diagnostics=tuple(state.diagnostics)))

    async def _list(self, path: str, state: _BuildState) -> Result[list[DirectoryListingEntry]]:
        async with state.semaphore:
            try:
                return await self._lister.list_directory(path)
            except Exception as exc:
                return Result.Err(ErrorCode.UNREADABLE, f"Failed to list {path}: {exc}")

    async def _build_children(
        self,
        parent: str,
        parent_key: str,
        entries: list[DirectoryListingEntry],
        depth: int,
        state: _BuildState,
        ancestors: frozenset[str],
    ) -> tuple[DirectoryTreeNode, ...]:
        # Keys are canonical paths: a link's real path, or the parent's key plus the name.
        pending = []
        for entry in entries:
            if not entry.is_directory:
                continue
            child_path = self._policy.join(parent, entry.name)
            key = (
                self._policy.normalize(entry.real_path)
                if entry.real_path
                else self._policy.join(parent_key, entry.name)
            )
            if key in ancestors:
                state.diagnostics.append(
                    TreeDiagnostic(child_path, ErrorCode.CYCLE.value, f"Links back to {key}; not descending")
                )
                continue
            pending.append(self._build_subtree(child_path, key, entry.name, depth, state, ancestors | {key}))

        nodes = await asyncio.gather(*pending)
        return tuple(node for node in nodes if node is not None)

    async def _build_subtree(
        self,
        path: str,
        key: str,
        label: str,
        depth: int,
        state: _BuildState,
        ancestors: frozenset[str],
    ) -> DirectoryTreeNode | None:
        if depth >= self._max_depth:
            state.diagnostics.append(
                TreeDiagnostic(path, ErrorCode.MAX_DEPTH.value, f"Depth limit {self._max_depth} reached; not expanded")
            )
            return DirectoryTreeNode(id=path, label=label)

        listing = await self._list(path, state)
        if not listing.ok:
            state.diagnostics.append(
                TreeDiagnostic(path, ErrorCode.UNREADABLE.value, listing.error or f"Unable to read directory: {path}")
            )
            return None

        children = await self._build_children(path, key, listing.data or [], depth + 1, state, ancestors)
        return DirectoryTreeNode(id=path, label=label, children=children)
