from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Mapping, Sequence

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .connections import REDIS_CONNECTIONS, ConnectionCache
from .events import MutationEvent
from .expiry import is_expired, now_ms
from .json_store import dumps_entry, loads_entry
from .kv import KV, is_selector
from .resolvers import resolve_bulk_load, resolve_clear, resolve_delete, resolve_set, selector_key
from .settings import get_settings

logger = logging.getLogger(__name__)


class RedisKV(KV):
    """
    One Redis hash per store path ("<namespace>:<seg1>:<seg2>"), each field
    holding a serialized envelope.

    By default expiry is collection-level: the whole hash carries the TTL and
    entries are never filtered one by one. With `field_level_expiry=True` each
    envelope's `expires` is enforced on read as well.

    With a `channel`, every event is published in the same MULTI as the write,
    and `listen()` applies events published by other instances.
    """

    def __init__(
        self,
        *,
        path: Sequence[str],
        redis_url: str | None = None,
        channel: str | None = None,
        namespace: str | None = None,
        field_level_expiry: bool = False,
        client: Redis | None = None,
        connections: ConnectionCache = REDIS_CONNECTIONS,
        **options: Any,
    ) -> None:
        options.setdefault("key_level_expiry", field_level_expiry)
        super().__init__(path=path, **options)
        settings = get_settings()
        self._url = redis_url or settings.redis_url
        self._connections = connections
        self._owns_client = client is None
        self._redis: Redis = client if client is not None else connections.acquire(self._url)
        self._redis_path = f"{namespace or settings.namespace}:{':'.join(self.path)}"
        self._channel = channel
        self._instance_id = uuid.uuid4().hex
        self._closed = False

    @property
    def redis(self) -> Redis:
        return self._redis

    @property
    def redis_path(self) -> str:
        return self._redis_path

    @property
    def channel(self) -> str | None:
        return self._channel

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_client:
            await self._connections.release(self._url)
        await super().close()

    # ---------- reads ----------

    async def _entries(self, *, meta: bool = False) -> list[tuple[str, Any]]:
        raw = await self._redis.hgetall(self._redis_path)
        entries = [(k, loads_entry(v)) for k, v in raw.items()]
        if self.key_level_expiry:
            expired = [k for k, e in entries if is_expired(e.get("expires"), True)]
            if expired:
                entries = [(k, e) for k, e in entries if k not in expired]
                await self._discard(*expired)
        return [(k, e if meta else e.get("value")) for k, e in entries]

    async def _discard(self, *keys: str) -> None:
        try:
            await self._redis.hdel(self._redis_path, *keys)
        except RedisError as e:
            logger.warning("KV CLEANUP: failed to drop expired %s from %s: %r", keys, self._redis_path, e)

    async def keys(self) -> list[str]:
        if self.key_level_expiry:
            return await super().keys()
        return list(await self._redis.hkeys(self._redis_path))

    async def values(self) -> list[Any]:
        if self.key_level_expiry:
            return await super().values()
        return [loads_entry(v).get("value") for v in await self._redis.hvals(self._redis_path)]

    async def count(self) -> int:
        if self.key_level_expiry:
            return await super().count()
        return int(await self._redis.hlen(self._redis_path))

    async def has(self, key: Any) -> bool:
        k = selector_key(key)
        if self.key_level_expiry:
            return await self.get({"key": k}) is not None
        return bool(await self._redis.hexists(self._redis_path, k))

    async def get(self, key: Any) -> Any:
        k = selector_key(key)
        entry = loads_entry(await self._redis.hget(self._redis_path, k))
        if entry is None:
            return None
        if self.key_level_expiry and is_expired(entry.get("expires"), True):
            await self._discard(k)
            return None
        return entry if is_selector(key) else entry.get("value")

    # ---------- writes ----------

    def _relay_message(self, event: MutationEvent) -> str:
        return json.dumps({"sender": self._instance_id, "event": json.loads(event.to_wire())})

    def _effective_ttl_ms(self, entries: Sequence[Mapping[str, Any]]) -> int:
        ttl_ms = int(self.ttl * 1000)
        if self.key_level_expiry:
            now = now_ms()
            for entry in entries:
                if entry.get("expires"):
                    ttl_ms = max(ttl_ms, int(entry["expires"]) - now)
        return ttl_ms

    async def set(self, key: Any, value: Any = None, **options: Any) -> None:
        resolved = resolve_set(self.context, key, value, options)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.hset(self._redis_path, resolved.key, dumps_entry(resolved.entry))
            if self._channel:
                pipe.publish(self._channel, self._relay_message(resolved.event))
            if self.ttl:
                pipe.pexpire(self._redis_path, self._effective_ttl_ms([resolved.entry]))
            await pipe.execute()
        await self._notify(resolved.event)

    async def delete(self, key: Any, **options: Any) -> None:
        resolved = resolve_delete(self.context, key, options)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.hdel(self._redis_path, resolved.key)
            if self._channel:
                pipe.publish(self._channel, self._relay_message(resolved.event))
            await pipe.execute()
        await self._notify(resolved.event)

    async def clear(self, **options: Any) -> None:
        event = resolve_clear(self.context, options)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.delete(self._redis_path)
            if self._channel:
                pipe.publish(self._channel, self._relay_message(event))
            await pipe.execute()
        await self._notify(event)

    async def bulk_load(self, data: Mapping[str, Any], *, merge: bool = False, hashed: bool = False) -> None:
        resolved = resolve_bulk_load(self.context, data, merge=merge, hashed=hashed)
        async with self._redis.pipeline(transaction=True) as pipe:
            if not merge:
                pipe.delete(self._redis_path)
            if resolved.entries:
                pipe.hset(
                    self._redis_path,
                    mapping={k: dumps_entry(e) for k, e in resolved.entries.items()},
                )
            if self._channel:
                pipe.publish(self._channel, self._relay_message(resolved.event))
            if self.ttl and resolved.entries:
                pipe.pexpire(self._redis_path, self._effective_ttl_ms(list(resolved.entries.values())))
            await pipe.execute()
        await self._notify(resolved.event)

    # ---------- relay ----------

    async def listen(self) -> None:
        """
        Apply events other instances publish on the channel until cancelled.

        Messages this instance published itself were already delivered
        locally and are skipped.
        """
        if not self._channel:
            raise ValueError("listen() requires a channel")
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    envelope = json.loads(message["data"])
                    if envelope.get("sender") == self._instance_id:
                        continue
                    event = MutationEvent.model_validate(envelope["event"])
                except (ValueError, KeyError, TypeError) as e:
                    logger.info("KV RELAY: ignoring malformed message on %s: %r", self._channel, e)
                    continue
                await self.receive(event)
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()
