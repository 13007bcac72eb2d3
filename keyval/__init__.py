from __future__ import annotations

from .connections import REDIS_CONNECTIONS, ConnectionCache
from .disk_store import DiskJsonDocumentStore, FileKV
from .errors import (
    HashFieldExpected,
    InvalidBulkArgument,
    InvalidEvent,
    InvalidExpires,
    InvalidPath,
    KeyValError,
)
from .events import EVENT_TYPES, EventBus, MutationEvent
from .expiry import is_expired, normalize_expires
from .factory import create_kv
from .interfaces import KeyValueStore, Relay
from .kv import KV
from .mapping_store import MappingKV
from .memory_store import InMemoryKV
from .redis_store import RedisKV
from .registry import Node, PathRegistry, Subscription
from .relay import LocalRelay
from .resolvers import StoreContext, resolve_bulk_load, resolve_clear, resolve_delete, resolve_set
from .settings import Settings, get_settings

__all__ = [
    "KV",
    "KeyValueStore",
    "Relay",
    "InMemoryKV",
    "FileKV",
    "MappingKV",
    "RedisKV",
    "DiskJsonDocumentStore",
    "LocalRelay",
    "ConnectionCache",
    "REDIS_CONNECTIONS",
    "PathRegistry",
    "Node",
    "Subscription",
    "EventBus",
    "MutationEvent",
    "EVENT_TYPES",
    "StoreContext",
    "resolve_set",
    "resolve_delete",
    "resolve_clear",
    "resolve_bulk_load",
    "normalize_expires",
    "is_expired",
    "create_kv",
    "Settings",
    "get_settings",
    "KeyValError",
    "InvalidPath",
    "InvalidEvent",
    "InvalidExpires",
    "InvalidBulkArgument",
    "HashFieldExpected",
]
