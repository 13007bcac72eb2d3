from __future__ import annotations

import asyncio
import logging
import threading
from typing import Awaitable, Callable

from .events import MutationEvent

logger = logging.getLogger(__name__)

Handler = Callable[[str], Awaitable[None]]


class LocalRelay:
    """
    In-process broadcast channel. Every relay opened with the same name is a
    peer; publishing hands the event's wire text to all other peers, never
    back to the sender.
    """

    _guard = threading.Lock()
    _channels: dict[str, list["LocalRelay"]] = {}

    def __init__(self, name: str) -> None:
        self.name = name
        self._handler: Handler | None = None
        self._closed = False
        with self._guard:
            self._channels.setdefault(name, []).append(self)

    def bind(self, handler: Handler) -> None:
        self._handler = handler

    def peers(self) -> list["LocalRelay"]:
        with self._guard:
            return [r for r in self._channels.get(self.name, []) if r is not self]

    async def publish(self, event: MutationEvent) -> None:
        if self._closed:
            return
        text = event.to_wire()
        targets = [p for p in self.peers() if p._handler is not None]
        results = await asyncio.gather(*(p._handler(text) for p in targets), return_exceptions=True)  # type: ignore[misc]
        for result in results:
            if isinstance(result, Exception):
                logger.warning("KV RELAY: peer on %r failed to apply %s event: %r", self.name, event.type, result)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with self._guard:
            peers = self._channels.get(self.name, [])
            if self in peers:
                peers.remove(self)
            if not peers:
                self._channels.pop(self.name, None)
