"""Versioned in-memory copy of the tree collection, kept in step with TreeStore.

Readers use `trees` / `get()`. Every mutation computes the new collection from
the current one, saves it in full and only then swaps it in, all under one lock.
A failed save leaves the snapshot untouched.
"""

import asyncio
import logging

from geogenesis.errors import CorruptState, TreeNotFound
from geogenesis.schemas.tree import Tree
from geogenesis.services.tree_store import TreeStore

logger = logging.getLogger(__name__)


class TreeSnapshot:
    def __init__(self, store: TreeStore):
        self.store = store
        self.version = 0
        self._trees: tuple[Tree, ...] = ()
        self._lock = asyncio.Lock()

    @property
    def trees(self) -> tuple[Tree, ...]:
        return self._trees

    def get(self, tree_id: str) -> Tree:
        for tree in self._trees:
            if tree.id == tree_id:
                return tree
        raise TreeNotFound(f"Tree {tree_id} not found")

    async def load(self) -> None:
        """Reload from the store. Unreadable state is treated as empty."""
        async with self._lock:
            try:
                trees = await self.store.load_all()
            except CorruptState as e:
                logger.error("Discarding corrupt tree state: %s", e)
                trees = []
            self._swap(tuple(trees))
        logger.info("Loaded %d tree(s) (version %d)", len(self._trees), self.version)

    async def add(self, tree: Tree) -> Tree:
        """Prepend a newly planted tree and persist."""
        async with self._lock:
            if any(t.id == tree.id for t in self._trees):
                raise ValueError(f"Tree {tree.id} already exists")
            new_trees = (tree, *self._trees)
            await self.store.save_all(new_trees)
            self._swap(new_trees)
        return tree

    async def replace(self, tree: Tree) -> Tree:
        """Swap in an updated tree (matched by id) and persist."""
        async with self._lock:
            if not any(t.id == tree.id for t in self._trees):
                raise TreeNotFound(f"Tree {tree.id} not found")
            new_trees = tuple(tree if t.id == tree.id else t for t in self._trees)
            await self.store.save_all(new_trees)
            self._swap(new_trees)
        return tree

    def _swap(self, trees: tuple[Tree, ...]) -> None:
        self._trees = trees
        self.version += 1
