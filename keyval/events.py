from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidEvent
from .expiry import now_ms
from .registry import Node, PathRegistry, Subscription

logger = logging.getLogger(__name__)

EventType = Literal["set", "delete", "clear", "bulk-load"]
EVENT_TYPES = frozenset({"set", "delete", "clear", "bulk-load"})
BULK_EVENT_TYPES = frozenset({"clear", "bulk-load"})

_MISSING = object()


class MutationEvent(BaseModel):
    """
    Canonical mutation notification.

    The same shape is delivered to in-process observers and relayed as text
    between cooperating instances:
      {"type": ..., "key"?: ..., "value"?: ..., "data"?: {...}, "options"?: {...},
       "path": [...], "origins": [...], "timestamp": <epoch ms>, "scope": <int>}
    """

    model_config = ConfigDict(frozen=True)

    # Kept as a plain str so unknown types reach fire() and raise InvalidEvent.
    type: str
    key: str | None = None
    value: Any = None
    data: dict[str, Any] | None = None
    options: dict[str, Any] | None = None
    path: tuple[str, ...] = ()
    origins: tuple[Any, ...] = ()
    timestamp: int = Field(default_factory=now_ms)
    scope: int = 0

    def to_wire(self) -> str:
        return self.model_dump_json(exclude_none=True)

    @classmethod
    def from_wire(cls, raw: str | bytes) -> "MutationEvent":
        return cls.model_validate_json(raw)


def _origin_at(origins: tuple[Any, ...], i: int) -> Any:
    return origins[i] if 0 <= i < len(origins) else _MISSING


def synthesize_child_event(event: MutationEvent, key: str) -> MutationEvent | None:
    """
    Derive the per-key event a bulk event implies for one existing child.

    Returns None when the child is untouched (merge without that key).
    """
    update: dict[str, Any] = {"type": "delete", "key": key}
    if event.type == "bulk-load" and event.data is not None:
        if key in event.data:
            update = {"type": "set", "key": key, "value": event.data[key]}
        elif (event.options or {}).get("merge"):
            return None
    return MutationEvent(
        **update,
        path=event.path,
        origins=event.origins,
        timestamp=event.timestamp,
    )


class EventBus:
    """Routes mutation events to the subscriptions of a PathRegistry."""

    def __init__(self, registry: PathRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> PathRegistry:
        return self._registry

    async def fire(self, event: MutationEvent) -> None:
        if event.type not in EVENT_TYPES:
            raise InvalidEvent(event.type)

        target = list(event.path)
        if event.key is not None:
            target.append(event.key)
        node = self._registry.lookup(target, partial=True)
        if node is None:
            return

        subscriptions: list[Subscription] = []
        for level in node.lineage():
            subscriptions.extend(list(level.subscriptions))

        pending: list[Any] = []
        errors: list[BaseException] = []
        for subscription in subscriptions:
            self._deliver(subscription, event, pending, errors)

        if event.type in BULK_EVENT_TYPES:
            collection = self._registry.lookup(event.path)
            if collection is not None:
                self._expand(collection, event, pending, errors)

        logger.debug(
            "KV FIRE: type=%s path=%s key=%s subscriptions=%d awaiting=%d",
            event.type,
            "/".join(event.path),
            event.key,
            len(subscriptions),
            len(pending),
        )

        if pending:
            results = await asyncio.gather(*pending, return_exceptions=True)
            errors.extend(r for r in results if isinstance(r, BaseException))

        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise BaseExceptionGroup("observer callbacks failed", errors)

    def _expand(
        self,
        collection: Node,
        event: MutationEvent,
        pending: list[Any],
        errors: list[BaseException],
    ) -> None:
        for key, child in list(collection.children.items()):
            synthetic = synthesize_child_event(event, key)
            if synthetic is None:
                continue
            for subscription in list(child.subscriptions):
                self._deliver(subscription, synthetic, pending, errors)

    def _deliver(
        self,
        subscription: Subscription,
        event: MutationEvent,
        pending: list[Any],
        errors: list[BaseException],
    ) -> None:
        # Compare from the innermost origin outward, stopping at the subscription scope.
        i = len(event.origins) - 1
        while i >= subscription.scope:
            if _origin_at(subscription.origins, i) != event.origins[i]:
                return
            i -= 1

        delivered = event.model_copy(update={"scope": i + 1})
        try:
            result = subscription.callback(delivered)
        except Exception as e:
            errors.append(e)
        else:
            if inspect.isawaitable(result):
                pending.append(asyncio.ensure_future(result))
        finally:
            if subscription.once:
                subscription.dispose()
