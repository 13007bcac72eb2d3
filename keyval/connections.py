from __future__ import annotations

import inspect
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

from redis.asyncio import Redis

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    client: Any
    refs: int = 0


async def _close_client(client: Any) -> None:
    close = getattr(client, "aclose", None) or getattr(client, "close", None)
    if close is None:
        return
    result = close()
    if inspect.isawaitable(result):
        await result


class ConnectionCache:
    """
    Process-wide cache of engine clients keyed by connection name.

    Clients are created on first acquire and closed when the last holder
    releases them (or on close_all).
    """

    def __init__(self, factory: Callable[[str], Any]) -> None:
        self._factory = factory
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def acquire(self, name: str) -> Any:
        with self._guard:
            entry = self._entries.get(name)
            if entry is None:
                entry = self._entries[name] = _Entry(client=self._factory(name))
                logger.debug("KV CONNECTIONS: opened %s", name)
            entry.refs += 1
            return entry.client

    async def release(self, name: str) -> None:
        with self._guard:
            entry = self._entries.get(name)
            if entry is None:
                return
            entry.refs -= 1
            if entry.refs > 0:
                return
            del self._entries[name]
        logger.debug("KV CONNECTIONS: closing %s", name)
        await _close_client(entry.client)

    async def close_all(self) -> None:
        with self._guard:
            entries = list(self._entries.items())
            self._entries.clear()
        for name, entry in entries:
            logger.debug("KV CONNECTIONS: closing %s", name)
            await _close_client(entry.client)

    def __contains__(self, name: str) -> bool:
        with self._guard:
            return name in self._entries


def _redis_from_url(url: str) -> Redis:
    return Redis.from_url(url, decode_responses=True)


REDIS_CONNECTIONS = ConnectionCache(_redis_from_url)
