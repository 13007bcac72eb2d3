from __future__ import annotations

import logging
from typing import Any, Sequence

from dotenv import load_dotenv

from .disk_store import FileKV
from .kv import KV
from .mapping_store import MappingKV
from .memory_store import InMemoryKV
from .redis_store import RedisKV
from .settings import get_settings

logger = logging.getLogger(__name__)

BACKENDS: dict[str, type[KV]] = {
    "memory": InMemoryKV,
    "file": FileKV,
    "mapping": MappingKV,
    "redis": RedisKV,
}


def create_kv(backend: str, path: Sequence[str], *, env_file: str | None = "local.env", **options: Any) -> KV:
    """
    Build a store by backend name, filling unset options from the environment
    (and `env_file`, when present).
    """
    if env_file:
        load_dotenv(env_file)
    settings = get_settings()

    try:
        cls = BACKENDS[backend]
    except KeyError:
        raise ValueError(f"Unknown backend {backend!r}; expected one of {sorted(BACKENDS)}") from None

    if settings.debug_log_events:
        logging.getLogger("keyval.events").setLevel(logging.DEBUG)

    options.setdefault("ttl", settings.default_ttl)
    if cls is FileKV:
        options.setdefault("data_dir", settings.data_dir)
    elif cls is RedisKV:
        options.setdefault("redis_url", settings.redis_url)
        options.setdefault("namespace", settings.namespace)

    logger.debug("KV CREATE: backend=%s path=%s ttl=%s", backend, list(path), options["ttl"])
    return cls(path=path, **options)
