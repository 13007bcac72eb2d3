from __future__ import annotations

import pytest

from keyval.errors import HashFieldExpected, InvalidBulkArgument
from keyval.expiry import now_ms
from keyval.resolvers import (
    StoreContext,
    resolve_bulk_load,
    resolve_clear,
    resolve_delete,
    resolve_set,
)

CTX = StoreContext(path=("users",), origins=("app",))
TTL_CTX = StoreContext(path=("users",), origins=("app",), ttl=60)


def test_resolve_set_plain_key_and_value():
    r = resolve_set(CTX, "a", 1)

    assert r.key == "a"
    assert r.entry == {"value": 1}
    assert r.event.type == "set"
    assert r.event.key == "a"
    assert r.event.value == 1
    assert r.event.path == ("users",)
    assert r.event.origins == ("app",)


def test_resolve_set_selector_keeps_metadata_and_normalizes_expires():
    r = resolve_set(CTX, {"key": "a", "value": 1, "tag": "x", "expires": 1893456000})

    assert r.key == "a"
    assert r.entry == {"value": 1, "tag": "x", "expires": 1893456000000}


def test_resolve_set_derives_expires_from_ttl():
    before = now_ms()
    r = resolve_set(TTL_CTX, "a", 1)

    assert before + 60_000 <= r.entry["expires"] <= now_ms() + 60_000


def test_resolve_set_ttl_ignored_without_key_level_expiry():
    ctx = StoreContext(path=("users",), ttl=60, key_level_expiry=False)
    assert "expires" not in resolve_set(ctx, "a", 1).entry


def test_resolve_delete_and_clear_envelopes():
    d = resolve_delete(CTX, {"key": "a"})
    assert (d.key, d.event.type, d.event.key) == ("a", "delete", "a")

    c = resolve_clear(CTX, {"reason": "reset"})
    assert c.type == "clear"
    assert c.key is None
    assert c.options == {"reason": "reset"}


def test_resolve_bulk_load_wraps_values_and_unwraps_event_data():
    r = resolve_bulk_load(TTL_CTX, {"a": 1, "b": {"nested": True}}, merge=True)

    assert set(r.entries) == {"a", "b"}
    assert r.entries["a"]["value"] == 1
    assert r.entries["b"]["value"] == {"nested": True}
    assert all("expires" in e for e in r.entries.values())
    assert r.event.type == "bulk-load"
    assert r.event.data == {"a": 1, "b": {"nested": True}}
    assert r.event.options == {"merge": True, "hashed": False}


def test_resolve_bulk_load_hashed_mode():
    r = resolve_bulk_load(CTX, {"a": {"value": 1, "expires": "2030-01-01T00:00:00Z"}}, hashed=True)

    assert r.entries["a"] == {"value": 1, "expires": 1893456000000}
    assert r.event.data == {"a": 1}

    with pytest.raises(HashFieldExpected):
        resolve_bulk_load(CTX, {"a": 1}, hashed=True)


@pytest.mark.parametrize("bad", [None, [("a", 1)], "a=1", 3])
def test_resolve_bulk_load_rejects_non_mappings(bad):
    with pytest.raises(InvalidBulkArgument):
        resolve_bulk_load(CTX, bad)
