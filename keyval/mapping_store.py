from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping, Sequence

from .expiry import is_expired
from .json_store import dumps_entry, loads_entry
from .kv import KV, is_selector
from .resolvers import resolve_bulk_load, resolve_clear, resolve_delete, resolve_set, selector_key

logger = logging.getLogger(__name__)


class MappingKV(KV):
    """
    Web-storage style backend over any string-to-string mapping (a dict, a
    `shelve.Shelf`, ...). Several stores can share one mapping; each owns the
    keys under its "<seg1>:<seg2>:" prefix.
    """

    def __init__(
        self,
        *,
        path: Sequence[str],
        storage: MutableMapping[str, str] | None = None,
        **options: Any,
    ) -> None:
        super().__init__(path=path, **options)
        self._storage: MutableMapping[str, str] = storage if storage is not None else {}
        self._prefix = ":".join(self.path) + ":"

    @property
    def storage(self) -> MutableMapping[str, str]:
        return self._storage

    def _full_key(self, key: str) -> str:
        return self._prefix + key

    def _owned_keys(self) -> list[str]:
        return [k for k in list(self._storage.keys()) if isinstance(k, str) and k.startswith(self._prefix)]

    def _access(self, key: str) -> dict[str, Any] | None:
        full_key = self._full_key(key)
        raw = self._storage.get(full_key)
        if raw is None:
            return None
        try:
            entry = loads_entry(raw)
        except ValueError:
            logger.warning("KV CLEANUP: dropping unreadable entry %s", full_key)
            self._storage.pop(full_key, None)
            return None
        if is_expired(entry.get("expires"), self.key_level_expiry):
            self._storage.pop(full_key, None)
            return None
        return entry

    async def _entries(self, *, meta: bool = False) -> list[tuple[str, Any]]:
        out: list[tuple[str, Any]] = []
        for full_key in self._owned_keys():
            key = full_key[len(self._prefix):]
            entry = self._access(key)
            if entry is None:
                continue
            out.append((key, entry if meta else entry.get("value")))
        return out

    async def has(self, key: Any) -> bool:
        return self._access(selector_key(key)) is not None

    async def get(self, key: Any) -> Any:
        entry = self._access(selector_key(key))
        if entry is None:
            return None
        return entry if is_selector(key) else entry.get("value")

    async def set(self, key: Any, value: Any = None, **options: Any) -> None:
        resolved = resolve_set(self.context, key, value, options)
        self._storage[self._full_key(resolved.key)] = dumps_entry(resolved.entry)
        await self._notify(resolved.event)

    async def delete(self, key: Any, **options: Any) -> None:
        resolved = resolve_delete(self.context, key, options)
        self._storage.pop(self._full_key(resolved.key), None)
        await self._notify(resolved.event)

    def _remove_owned(self) -> None:
        for full_key in self._owned_keys():
            self._storage.pop(full_key, None)

    async def clear(self, **options: Any) -> None:
        event = resolve_clear(self.context, options)
        self._remove_owned()
        await self._notify(event)

    async def bulk_load(self, data: Mapping[str, Any], *, merge: bool = False, hashed: bool = False) -> None:
        resolved = resolve_bulk_load(self.context, data, merge=merge, hashed=hashed)
        if not merge:
            self._remove_owned()
        for key, entry in resolved.entries.items():
            self._storage[self._full_key(key)] = dumps_entry(entry)
        await self._notify(resolved.event)
