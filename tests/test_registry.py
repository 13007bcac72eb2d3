from __future__ import annotations

import asyncio

import pytest

from keyval.errors import InvalidPath
from keyval.registry import PathRegistry


def test_ensure_creates_intermediate_nodes_and_links_parents():
    reg = PathRegistry()
    leaf = reg.ensure(["users", "u1", "name"])

    users = reg.lookup(["users"])
    u1 = reg.lookup(["users", "u1"])
    assert users is not None and u1 is not None
    assert leaf.parent is u1
    assert u1.parent is users
    assert users.parent is reg.root
    assert reg.ensure(["users", "u1", "name"]) is leaf


@pytest.mark.parametrize("bad", [[], (), "users", None])
def test_invalid_paths_are_rejected(bad):
    reg = PathRegistry()
    with pytest.raises(InvalidPath):
        reg.ensure(bad)
    with pytest.raises(InvalidPath):
        reg.lookup(bad)


def test_lookup_exact_and_partial():
    reg = PathRegistry()
    users = reg.ensure(["users"])

    assert reg.lookup(["users", "u1"]) is None
    assert reg.lookup(["users", "u1", "name"], partial=True) is users
    # nothing exists under the first segment
    assert reg.lookup(["orders", "o1"], partial=True) is None
    # partial lookup never creates
    assert users.children == {}


def test_dispose_prunes_empty_nodes_toward_root():
    reg = PathRegistry()
    reg.ensure(["users", "u2"]).values["value"] = 1
    sub = reg.observe(["users", "u1", "name"], lambda e: None)

    sub.dispose()

    assert reg.lookup(["users", "u1"]) is None
    # sibling holding a value keeps the collection alive
    assert reg.lookup(["users", "u2"]) is not None

    reg.lookup(["users", "u2"]).values.clear()
    reg.prune(reg.lookup(["users", "u2"]))
    assert reg.root.children == {}


def test_prune_keeps_nodes_with_subscriptions():
    reg = PathRegistry()
    keep = reg.observe(["users"], lambda e: None)
    gone = reg.observe(["users", "u1"], lambda e: None)

    gone.dispose()
    gone.dispose()  # idempotent

    assert reg.lookup(["users", "u1"]) is None
    assert reg.lookup(["users"]) is keep.node
    assert keep.active
    assert not gone.active


def test_subscriptions_capture_origins_snapshot():
    reg = PathRegistry()
    origins = ["app", "tab1"]
    sub = reg.observe(["users"], lambda e: None, origins=origins, scope=1)
    origins.append("later")

    assert sub.origins == ("app", "tab1")
    assert sub.scope == 1


def test_detach_drops_subtree_and_its_subscriptions():
    reg = PathRegistry()
    reg.observe(["users", "u1"], lambda e: None)
    reg.observe(["users"], lambda e: None)

    reg.detach(["users"])

    assert reg.lookup(["users"]) is None
    assert reg.root.children == {}


def test_signal_completion_disposes_subscription():
    async def _run():
        reg = PathRegistry()
        signal = asyncio.get_running_loop().create_future()
        sub = reg.observe(["users"], lambda e: None, signal=signal)
        assert sub.active

        signal.cancel()
        await asyncio.sleep(0)

        assert not sub.active
        assert reg.lookup(["users"]) is None

    asyncio.run(_run())
