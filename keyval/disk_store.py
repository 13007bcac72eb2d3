from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence, TypeVar

from .expiry import is_expired
from .json_store import atomic_write_json, read_json
from .kv import KV, is_selector
from .locks import FILE_LOCKS
from .paths import data_dir as configured_data_dir, store_file
from .resolvers import resolve_bulk_load, resolve_clear, resolve_delete, resolve_set, selector_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DiskJsonDocumentStore:
    """
    Stores a single JSON document on disk at a fixed path.

    - Always returns a dict (empty dict when the file is missing or empty).
    - Writes atomically.
    - `update` holds the file lock across load + save.
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _load_unlocked(self) -> dict[str, Any]:
        raw = read_json(self._path)
        return raw if isinstance(raw, dict) else {}

    def load(self) -> dict[str, Any]:
        with FILE_LOCKS.lock_for(self._path):
            return self._load_unlocked()

    def save(self, doc: dict[str, Any]) -> None:
        with FILE_LOCKS.lock_for(self._path):
            atomic_write_json(self._path, doc)

    def update(self, mutate: Callable[[dict[str, Any]], T]) -> T:
        with FILE_LOCKS.lock_for(self._path):
            doc = self._load_unlocked()
            result = mutate(doc)
            atomic_write_json(self._path, doc)
            return result


class FileKV(KV):
    """
    Disk-backed store: one JSON document per store path, mapping each key to
    its envelope ({"value": ..., "expires"?: ...}).

    File I/O runs in a worker thread so the event loop never blocks on disk.
    """

    def __init__(self, *, path: Sequence[str], data_dir: str | Path | None = None, **options: Any) -> None:
        super().__init__(path=path, **options)
        base = Path(data_dir) if data_dir is not None else configured_data_dir()
        self._doc = DiskJsonDocumentStore(store_file(base, self.path))

    @property
    def file(self) -> Path:
        return self._doc.path

    async def _load(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._doc.load)

    async def _update(self, mutate: Callable[[dict[str, Any]], T]) -> T:
        return await asyncio.to_thread(self._doc.update, mutate)

    def _expired(self, entry: Any) -> bool:
        return isinstance(entry, dict) and is_expired(entry.get("expires"), self.key_level_expiry)

    async def _entries(self, *, meta: bool = False) -> list[tuple[str, Any]]:
        data = await self._load()
        return [
            (k, e if meta else e.get("value"))
            for k, e in data.items()
            if isinstance(e, dict) and not self._expired(e)
        ]

    async def has(self, key: Any) -> bool:
        data = await self._load()
        entry = data.get(selector_key(key))
        return isinstance(entry, dict) and not self._expired(entry)

    async def get(self, key: Any) -> Any:
        k = selector_key(key)
        data = await self._load()
        entry = data.get(k)
        if not isinstance(entry, dict):
            return None
        if self._expired(entry):
            await self._discard_expired(k)
            return None
        return entry if is_selector(key) else entry.get("value")

    async def _discard_expired(self, key: str) -> None:
        def _drop(doc: dict[str, Any]) -> None:
            entry = doc.get(key)
            if isinstance(entry, dict) and self._expired(entry):
                del doc[key]

        try:
            await self._update(_drop)
        except OSError as e:
            logger.warning("KV CLEANUP: failed to drop expired %r from %s: %r", key, self.file, e)

    async def set(self, key: Any, value: Any = None, **options: Any) -> None:
        resolved = resolve_set(self.context, key, value, options)
        await self._update(lambda doc: doc.__setitem__(resolved.key, resolved.entry))
        await self._notify(resolved.event)

    async def delete(self, key: Any, **options: Any) -> None:
        resolved = resolve_delete(self.context, key, options)
        await self._update(lambda doc: doc.pop(resolved.key, None))
        await self._notify(resolved.event)

    async def clear(self, **options: Any) -> None:
        event = resolve_clear(self.context, options)
        await asyncio.to_thread(self._doc.save, {})
        await self._notify(event)

    async def bulk_load(self, data: Mapping[str, Any], *, merge: bool = False, hashed: bool = False) -> None:
        resolved = resolve_bulk_load(self.context, data, merge=merge, hashed=hashed)

        def _apply(doc: dict[str, Any]) -> None:
            if not merge:
                doc.clear()
            doc.update(resolved.entries)

        await self._update(_apply)
        await self._notify(resolved.event)
