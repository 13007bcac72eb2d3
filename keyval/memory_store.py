from __future__ import annotations

from typing import Any, Mapping

from .expiry import is_expired
from .kv import KV, is_selector
from .registry import Node
from .resolvers import resolve_bulk_load, resolve_clear, resolve_delete, resolve_set, selector_key


class InMemoryKV(KV):
    """
    Keeps entries inside the registry tree itself: each key's node holds its
    envelope fields in `Node.values`. Nothing survives the process.
    """

    def _live(self, node: Node | None) -> Node | None:
        if node is None or "value" not in node.values:
            return None
        if is_expired(node.values.get("expires"), self.key_level_expiry):
            self._drop(node)
            return None
        return node

    def _drop(self, node: Node | None) -> None:
        if node is None:
            return
        node.values.clear()
        # Nodes that still carry observers stay in place.
        self.registry.prune(node)

    def _collection(self) -> Node | None:
        return self.registry.lookup(self.path)

    async def _entries(self, *, meta: bool = False) -> list[tuple[str, Any]]:
        collection = self._collection()
        if collection is None:
            return []
        out: list[tuple[str, Any]] = []
        for key, node in list(collection.children.items()):
            if self._live(node) is None:
                continue
            out.append((key, dict(node.values) if meta else node.values["value"]))
        return out

    async def has(self, key: Any) -> bool:
        return self._live(self.registry.lookup(self._key_path(key))) is not None

    async def get(self, key: Any) -> Any:
        node = self._live(self.registry.lookup(self._key_path(key)))
        if node is None:
            return None
        if is_selector(key):
            return dict(node.values)
        return node.values["value"]

    async def set(self, key: Any, value: Any = None, **options: Any) -> None:
        resolved = resolve_set(self.context, key, value, options)
        node = self.registry.ensure(self._key_path(resolved.key))
        node.values.clear()
        node.values.update(resolved.entry)
        await self._notify(resolved.event)

    async def delete(self, key: Any, **options: Any) -> None:
        resolved = resolve_delete(self.context, key, options)
        self._drop(self.registry.lookup(self._key_path(resolved.key)))
        await self._notify(resolved.event)

    async def clear(self, **options: Any) -> None:
        event = resolve_clear(self.context, options)
        self._drop_all()
        await self._notify(event)

    def _drop_all(self) -> None:
        collection = self._collection()
        if collection is None:
            return
        for node in list(collection.children.values()):
            self._drop(node)

    async def bulk_load(self, data: Mapping[str, Any], *, merge: bool = False, hashed: bool = False) -> None:
        resolved = resolve_bulk_load(self.context, data, merge=merge, hashed=hashed)
        if not merge:
            self._drop_all()
        for key, entry in resolved.entries.items():
            node = self.registry.ensure([*self.path, selector_key(key)])
            node.values.clear()
            node.values.update(entry)
        await self._notify(resolved.event)
