"""Tree persistence: one JSON document of all trees under a single storage key.

Layers:
  KeyValueStore   - get/set of raw strings (SQL table or in-memory dict)
  TreeStore       - load_all / save_all / upsert of the full Tree collection
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from geogenesis.db.models import KeyValueEntry
from geogenesis.errors import CorruptState
from geogenesis.schemas.tree import Tree

logger = logging.getLogger(__name__)

_tree_list = TypeAdapter(list[Tree])


class KeyValueStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value


class SqlKeyValueStore(KeyValueStore):
    """kv_entries table, one row per key, overwritten in full on set()."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, key: str) -> str | None:
        async with self.session_factory() as session:
            entry = await session.get(KeyValueEntry, key)
            return entry.value if entry else None

    async def set(self, key: str, value: str) -> None:
        async with self.session_factory() as session:
            entry = await session.get(KeyValueEntry, key)
            if entry is None:
                session.add(KeyValueEntry(key=key, value=value))
            else:
                entry.value = value
            await session.commit()


class TreeStore:
    def __init__(self, kv: KeyValueStore, key: str):
        self.kv = kv
        self.key = key
        self._write_lock = asyncio.Lock()

    async def load_all(self) -> list[Tree]:
        """Saved collection in saved order. Raises CorruptState if unreadable."""
        raw = await self.kv.get(self.key)
        if raw is None:
            return []
        try:
            trees = _tree_list.validate_json(raw)
        except ValidationError as e:
            raise CorruptState(f"Stored trees under '{self.key}' are invalid: {e}") from e
        seen = set()
        for tree in trees:
            if tree.id in seen:
                raise CorruptState(f"Stored trees under '{self.key}' repeat id {tree.id}")
            seen.add(tree.id)
        return trees

    async def save_all(self, trees: Sequence[Tree]) -> None:
        async with self._write_lock:
            await self._save(trees)

    async def upsert(self, tree: Tree) -> list[Tree]:
        """Replace the tree with the same id, or prepend it. Returns the saved collection."""
        async with self._write_lock:
            trees = await self.load_all()
            for i, existing in enumerate(trees):
                if existing.id == tree.id:
                    trees[i] = tree
                    break
            else:
                trees.insert(0, tree)
            await self._save(trees)
        return trees

    async def _save(self, trees: Sequence[Tree]) -> None:
        # caller holds _write_lock
        payload = _tree_list.dump_json(list(trees), by_alias=True).decode()
        await self.kv.set(self.key, payload)
        logger.debug("Saved %d tree(s) under %s", len(trees), self.key)
