from __future__ import annotations

import threading
from pathlib import Path


class NamedLockRegistry:
    """
    Hands out one stable lock per name so independent documents never contend.

    File paths are normalized first, so two stores pointing at the same file
    through different relative paths share a lock.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    @staticmethod
    def key_for(name: str | Path) -> str:
        if isinstance(name, Path):
            return str(name.resolve())
        return name

    def lock_for(self, name: str | Path) -> threading.Lock:
        key = self.key_for(name)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


FILE_LOCKS = NamedLockRegistry()
