from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .errors import HashFieldExpected, InvalidBulkArgument
from .events import MutationEvent
from .expiry import normalize_expires, now_ms, ttl_deadline


@dataclass(frozen=True)
class StoreContext:
    """What the resolvers need to know about the store performing a write."""

    path: tuple[str, ...]
    origins: tuple[Any, ...] = ()
    ttl: float = 0
    key_level_expiry: bool = True

    @property
    def derives_expiry(self) -> bool:
        return bool(self.ttl) and self.key_level_expiry


@dataclass(frozen=True)
class ResolvedSet:
    key: str
    value: Any
    # Persisted envelope: {"value": ..., "expires"?: ..., **extra}
    entry: dict[str, Any]
    event: MutationEvent


@dataclass(frozen=True)
class ResolvedBulkLoad:
    entries: dict[str, dict[str, Any]]
    event: MutationEvent
    merge: bool = False
    hashed: bool = False


@dataclass(frozen=True)
class ResolvedDelete:
    key: str
    event: MutationEvent
    options: dict[str, Any] = field(default_factory=dict)


def selector_key(key_or_selector: Any) -> str:
    if isinstance(key_or_selector, Mapping):
        return key_or_selector["key"]
    return key_or_selector


def _apply_expiry(ctx: StoreContext, entry: dict[str, Any], default_expires: int | None) -> None:
    if entry.get("expires"):
        entry["expires"] = normalize_expires(entry["expires"])
    elif default_expires is not None:
        entry["expires"] = default_expires
    else:
        entry.pop("expires", None)


def _event(ctx: StoreContext, **fields: Any) -> MutationEvent:
    return MutationEvent(path=ctx.path, origins=ctx.origins, timestamp=now_ms(), **fields)


def resolve_set(
    ctx: StoreContext,
    key_or_selector: Any,
    value: Any = None,
    options: Mapping[str, Any] | None = None,
) -> ResolvedSet:
    if isinstance(key_or_selector, Mapping):
        rest = dict(key_or_selector)
        key = rest.pop("key")
        value = rest.pop("value", None)
    else:
        key, rest = key_or_selector, {}

    _apply_expiry(ctx, rest, ttl_deadline(ctx.ttl) if ctx.derives_expiry else None)

    entry = {"value": value, **rest}
    event = _event(ctx, type="set", key=key, value=value, options=dict(options) if options else None)
    return ResolvedSet(key=key, value=value, entry=entry, event=event)


def resolve_delete(
    ctx: StoreContext,
    key_or_selector: Any,
    options: Mapping[str, Any] | None = None,
) -> ResolvedDelete:
    key = selector_key(key_or_selector)
    opts = dict(options or {})
    event = _event(ctx, type="delete", key=key, options=opts or None)
    return ResolvedDelete(key=key, event=event, options=opts)


def resolve_clear(ctx: StoreContext, options: Mapping[str, Any] | None = None) -> MutationEvent:
    return _event(ctx, type="clear", options=dict(options) if options else None)


def resolve_bulk_load(
    ctx: StoreContext,
    data: Any,
    *,
    merge: bool = False,
    hashed: bool = False,
) -> ResolvedBulkLoad:
    """
    Normalize a bulk payload into per-key envelopes.

    In hashed mode every value must already be an envelope mapping
    ({"value": ..., "expires"?: ...}); otherwise values are wrapped. The event
    carries the unwrapped values so observers never see envelopes.
    """
    if not isinstance(data, Mapping):
        raise InvalidBulkArgument(data)

    default_expires = ttl_deadline(ctx.ttl) if ctx.derives_expiry else None
    entries: dict[str, dict[str, Any]] = {}
    unwrapped: dict[str, Any] = {}
    for key, value in data.items():
        if hashed and not isinstance(value, Mapping):
            raise HashFieldExpected(key)
        entry = dict(value) if hashed else {"value": value}
        entry.setdefault("value", None)
        _apply_expiry(ctx, entry, default_expires)
        entries[key] = entry
        unwrapped[key] = entry["value"]

    event = _event(
        ctx,
        type="bulk-load",
        data=unwrapped,
        options={"merge": bool(merge), "hashed": bool(hashed)},
    )
    return ResolvedBulkLoad(entries=entries, event=event, merge=bool(merge), hashed=bool(hashed))
