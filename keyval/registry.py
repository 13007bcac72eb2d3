from __future__ import annotations

import threading
import weakref
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Sequence

from .errors import InvalidPath

Callback = Callable[[Any], Any]


def validate_path(path: Any) -> tuple[str, ...]:
    if isinstance(path, (str, bytes)) or not isinstance(path, Sequence) or not path:
        raise InvalidPath(path)
    return tuple(path)


class Node:
    """
    One location in the registry tree.

    Parents own their children; the parent link is a weak reference used only
    to walk upward and to detach on pruning.
    """

    def __init__(self, segment: str | None, parent: Node | None = None) -> None:
        self.segment = segment
        self.children: dict[str, Node] = {}
        # Insertion-ordered set: delivery follows registration order.
        self.subscriptions: dict[Subscription, None] = {}
        # Entry state for backends that keep their data in the tree.
        self.values: dict[str, Any] = {}
        self._parent = weakref.ref(parent) if parent is not None else None

    @property
    def parent(self) -> Node | None:
        return self._parent() if self._parent is not None else None

    def is_empty(self) -> bool:
        return not (self.children or self.subscriptions or self.values)

    def lineage(self) -> Iterator[Node]:
        node: Node | None = self
        while node is not None:
            yield node
            node = node.parent

    def dispose(self) -> None:
        parent = self.parent
        if parent is not None and parent.children.get(self.segment) is self:  # type: ignore[arg-type]
            del parent.children[self.segment]  # type: ignore[arg-type]

    def __repr__(self) -> str:
        return (
            f"Node({self.segment!r}, children={len(self.children)}, "
            f"subscriptions={len(self.subscriptions)})"
        )


@dataclass(eq=False)
class Subscription:
    callback: Callback
    node: Node
    origins: tuple[Any, ...] = ()
    scope: int = 0
    once: bool = False
    _registry: PathRegistry | None = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self in self.node.subscriptions

    def dispose(self) -> None:
        if self._registry is not None:
            self._registry.unsubscribe(self)


class PathRegistry:
    """
    In-process tree of Nodes addressed by path.

    A single re-entrant lock guards every structural mutation so the tree can
    be shared by stores driven from different threads.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._root = Node(None)

    @property
    def root(self) -> Node:
        return self._root

    def ensure(self, path: Sequence[str]) -> Node:
        segments = validate_path(path)
        with self._lock:
            node = self._root
            for segment in segments:
                child = node.children.get(segment)
                if child is None:
                    child = Node(segment, node)
                    node.children[segment] = child
                node = child
            return node

    def lookup(self, path: Sequence[str], *, partial: bool = False) -> Node | None:
        """
        Find the node at `path` without creating anything.

        With `partial`, return the deepest existing node along the path instead
        of None, as long as the first segment exists.
        """
        segments = validate_path(path)
        with self._lock:
            node = self._root
            for segment in segments:
                child = node.children.get(segment)
                if child is None:
                    if partial and node is not self._root:
                        return node
                    return None
                node = child
            return node

    def prune(self, node: Node | None) -> None:
        with self._lock:
            while node is not None and node is not self._root and node.is_empty():
                parent = node.parent
                node.dispose()
                node = parent

    def detach(self, path: Sequence[str]) -> None:
        with self._lock:
            node = self.lookup(path)
            if node is None:
                return
            parent = node.parent
            node.dispose()
            self.prune(parent)

    def observe(
        self,
        path: Sequence[str],
        callback: Callback,
        *,
        origins: Sequence[Any] = (),
        scope: int = 0,
        once: bool = False,
        signal: Any = None,
    ) -> Subscription:
        with self._lock:
            node = self.ensure(path)
            subscription = Subscription(
                callback=callback,
                node=node,
                origins=tuple(origins),
                scope=int(scope or 0),
                once=bool(once),
                _registry=self,
            )
            node.subscriptions[subscription] = None

        if signal is not None:
            signal.add_done_callback(lambda _: subscription.dispose())
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            node = subscription.node
            if subscription not in node.subscriptions:
                return
            del node.subscriptions[subscription]
            if not node.subscriptions:
                self.prune(node)
