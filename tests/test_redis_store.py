from __future__ import annotations

import asyncio
import uuid

from redis.asyncio import Redis

from keyval import RedisKV


def _path() -> list[str]:
    return ["test", uuid.uuid4().hex]


def _client(url: str) -> Redis:
    return Redis.from_url(url, decode_responses=True)


def test_redis_kv_basic_contract(redis_url):
    async def _run():
        client = _client(redis_url)
        store = RedisKV(path=_path(), client=client)
        events = []
        store.observe(lambda e: events.append(e.type))
        try:
            await store.set("a", 1)
            await store.set("b", 2)
            assert await store.get("a") == 1
            assert await store.has("a") is True
            assert sorted(await store.keys()) == ["a", "b"]
            assert sorted(await store.values()) == [1, 2]
            assert await store.count() == 2

            await store.delete("a")
            await store.delete("a")
            assert await store.get("a") is None
            assert await store.json() == {"b": 2}

            await store.clear()
            assert await store.count() == 0
            assert events == ["set", "set", "delete", "delete", "clear"]
        finally:
            await store.clear()
            await store.close()
            await client.aclose()

    asyncio.run(_run())


def test_redis_kv_bulk_load_replace_and_merge(redis_url):
    async def _run():
        client = _client(redis_url)
        store = RedisKV(path=_path(), client=client)
        field_a = []
        store.observe("a", lambda e: field_a.append(e.type))
        try:
            await store.set("a", 1)
            await store.bulk_load({"b": 2}, merge=True)
            assert await store.json() == {"a": 1, "b": 2}

            await store.bulk_load({"c": 3})
            assert await store.json() == {"c": 3}
            assert field_a == ["set", "delete"]
        finally:
            await store.clear()
            await store.close()
            await client.aclose()

    asyncio.run(_run())


def test_redis_kv_collection_level_ttl(redis_url):
    async def _run():
        client = _client(redis_url)
        store = RedisKV(path=_path(), client=client, ttl=0.3)
        try:
            await store.set("x", 1)
            pttl = await client.pttl(store.redis_path)
            assert 0 < pttl <= 300
            # per-key metadata is not written without field-level expiry
            assert "expires" not in await store.get({"key": "x"})

            await asyncio.sleep(0.5)
            assert await store.get("x") is None
        finally:
            await store.close()
            await client.aclose()

    asyncio.run(_run())


def test_redis_kv_field_level_expiry(redis_url):
    async def _run():
        client = _client(redis_url)
        store = RedisKV(path=_path(), client=client, field_level_expiry=True)
        try:
            await store.set({"key": "old", "value": 1, "expires": 1})
            await store.set("keep", 2)

            assert await store.keys() == ["keep"]
            assert await client.hexists(store.redis_path, "old") == 0
        finally:
            await store.clear()
            await store.close()
            await client.aclose()

    asyncio.run(_run())


def test_redis_kv_channel_relays_between_instances(redis_url):
    async def _run():
        path = _path()
        channel = f"keyval-test-{uuid.uuid4().hex}"
        c1, c2 = _client(redis_url), _client(redis_url)
        writer = RedisKV(path=path, client=c1, channel=channel, origins=["app", "w"])
        reader = RedisKV(path=path, client=c2, channel=channel, origins=["app", "r"])

        received: asyncio.Queue = asyncio.Queue()
        reader.observe(lambda e: received.put_nowait((e.type, e.key, e.origins)), scope=2)
        writer_seen = []
        writer.observe(lambda e: writer_seen.append(e.type))

        task = asyncio.create_task(reader.listen())
        writer_task = asyncio.create_task(writer.listen())
        try:
            await asyncio.sleep(0.2)
            await writer.set("a", 1)

            got = await asyncio.wait_for(received.get(), timeout=2)
            assert got == ("set", "a", ("app", "w"))

            await asyncio.sleep(0.1)
            # the writer does not re-apply its own publication
            assert writer_seen == ["set"]
        finally:
            task.cancel()
            writer_task.cancel()
            await asyncio.gather(task, writer_task, return_exceptions=True)
            await writer.clear()
            await writer.close()
            await reader.close()
            await c1.aclose()
            await c2.aclose()

    asyncio.run(_run())
