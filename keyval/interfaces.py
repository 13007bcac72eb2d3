from __future__ import annotations

from typing import Any, Awaitable, Callable, Mapping, Protocol, runtime_checkable

from .events import MutationEvent


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Contract every storage backend exposes.

    Keys address entries under the store's path. Reads only ever see live
    (non-expired) entries; writes notify observers after the physical write.
    """

    async def has(self, key: Any) -> bool:
        ...

    async def get(self, key: Any) -> Any:
        """Return the value, or the whole envelope when given a selector mapping."""
        ...

    async def set(self, key: Any, value: Any = None, **options: Any) -> None:
        ...

    async def delete(self, key: Any, **options: Any) -> None:
        ...

    async def clear(self, **options: Any) -> None:
        ...

    async def bulk_load(self, data: Mapping[str, Any], *, merge: bool = False, hashed: bool = False) -> None:
        ...

    async def keys(self) -> list[str]: ...
    async def values(self) -> list[Any]: ...
    async def entries(self) -> list[tuple[str, Any]]: ...
    async def count(self) -> int: ...

    async def json(self, *, meta: bool = False) -> dict[str, Any]:
        ...

    async def close(self) -> None:
        """Release engine resources. Safe to call more than once."""
        ...

    def observe(self, *args: Any, **options: Any) -> Callable[[], None]:
        ...


class Relay(Protocol):
    """
    Side channel carrying locally originated events to cooperating instances.

    Received events come back through the handler passed to `bind`.
    """

    def bind(self, handler: Callable[[str], Awaitable[None]]) -> None:
        ...

    async def publish(self, event: MutationEvent) -> None:
        ...

    def close(self) -> None:
        ...
