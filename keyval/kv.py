from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence

from .events import EventBus, MutationEvent
from .interfaces import Relay
from .registry import PathRegistry, validate_path
from .resolvers import StoreContext, selector_key


class KV:
    """
    Shared core of every backend: path addressing, observers, event delivery
    and the capability flags that tune resolver behaviour.

    Subclasses implement the physical operations and list live entries through
    `_entries`; the enumeration helpers below are derived from it.
    """

    def __init__(
        self,
        *,
        path: Sequence[str],
        ttl: float = 0,
        registry: PathRegistry | None = None,
        origins: Sequence[Any] = (),
        relay: Relay | None = None,
        key_level_expiry: bool = True,
    ) -> None:
        self._path = validate_path(path)
        self._ttl = float(ttl or 0)
        self._registry = registry if registry is not None else PathRegistry()
        self._bus = EventBus(self._registry)
        self._origins = tuple(origins)
        self._key_level_expiry = bool(key_level_expiry)
        self._relay = relay
        if relay is not None:
            relay.bind(self.receive)

    @property
    def path(self) -> tuple[str, ...]:
        return self._path

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def registry(self) -> PathRegistry:
        return self._registry

    @property
    def origins(self) -> tuple[Any, ...]:
        return self._origins

    @property
    def key_level_expiry(self) -> bool:
        return self._key_level_expiry

    @property
    def relay(self) -> Relay | None:
        return self._relay

    @property
    def context(self) -> StoreContext:
        return StoreContext(
            path=self._path,
            origins=self._origins,
            ttl=self._ttl,
            key_level_expiry=self._key_level_expiry,
        )

    def _key_path(self, key: Any) -> list[str]:
        return [*self._path, selector_key(key)]

    # ---------- observers ----------

    def observe(self, *args: Any, scope: int = 0, once: bool = False, signal: Any = None) -> Callable[[], None]:
        """
        observe(callback) watches the whole collection;
        observe(key, callback) watches one entry (key may be a sub-path list).
        """
        if len(args) == 1 and callable(args[0]):
            key: Any = []
            callback = args[0]
        elif len(args) == 2:
            key, callback = args
        else:
            raise TypeError("observe() expects (callback) or (key, callback)")

        if isinstance(key, (list, tuple)):
            field_path = [*self._path, *key]
        else:
            field_path = self._key_path(key)

        subscription = self._registry.observe(
            field_path,
            callback,
            origins=self._origins,
            scope=scope,
            once=once,
            signal=signal,
        )
        return subscription.dispose

    async def fire(self, event: MutationEvent) -> None:
        await self._bus.fire(event)

    async def receive(self, event: MutationEvent | str | bytes) -> None:
        """Feed an event received from another instance into local delivery."""
        if not isinstance(event, MutationEvent):
            event = MutationEvent.from_wire(event)
        await self._bus.fire(event)

    async def _publish(self, event: MutationEvent) -> None:
        if self._relay is not None:
            await self._relay.publish(event)

    async def _notify(self, event: MutationEvent) -> None:
        await self._publish(event)
        await self._bus.fire(event)

    def cleanup(self) -> None:
        self._registry.detach(self._path)

    # ---------- enumeration ----------

    async def _entries(self, *, meta: bool = False) -> list[tuple[str, Any]]:
        raise NotImplementedError

    async def entries(self) -> list[tuple[str, Any]]:
        return await self._entries()

    async def keys(self) -> list[str]:
        return [k for k, _ in await self._entries()]

    async def values(self) -> list[Any]:
        return [v for _, v in await self._entries()]

    async def count(self) -> int:
        return len(await self._entries())

    async def json(self, *, meta: bool = False) -> dict[str, Any]:
        return dict(await self._entries(meta=meta))

    async def close(self) -> None:
        if self._relay is not None:
            self._relay.close()
            self._relay = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(path={list(self._path)!r}, ttl={self._ttl!r})"


def is_selector(key: Any) -> bool:
    return isinstance(key, Mapping)
