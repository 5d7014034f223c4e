"""
Selected tree nodes and their projection to search path prefixes.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from ...path_utils import PathPolicy


class SelectionSet:
    """Node ids the user has marked selected. Every mutation swaps in a new frozenset."""

    def __init__(self) -> None:
        self._items: frozenset[str] = frozenset()

    @property
    def items(self) -> frozenset[str]:
        return self._items

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def replace(self, node_ids: Iterable[str]) -> bool:
        new_items = frozenset(node_ids)
        if new_items == self._items:
            return False
        self._items = new_items
        return True

    def clear(self) -> bool:
        return self.replace(())

    def retain(self, keep: Callable[[str], bool]) -> frozenset[str]:
        """Drop ids for which `keep` is false; returns the dropped ids."""
        dropped = frozenset(i for i in self._items if not keep(i))
        if dropped:
            self._items = self._items - dropped
        return dropped

    def discard_under(self, root: str, policy: PathPolicy) -> frozenset[str]:
        return self.retain(lambda node_id: not policy.is_ancestor_or_self(root, node_id))


class SelectionProjector:
    """
    Maps selected node ids to the path prefixes the search layer ORs together.

    Identity mapping for now; how a prefix scopes a query belongs to the search layer.
    """

    def project(self, selection: Iterable[str]) -> tuple[str, ...]:
        return tuple(sorted(set(selection)))
