from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


@dataclass(frozen=True)
class Settings:
    # Disk
    data_dir: str

    # Redis
    redis_url: str
    namespace: str

    # Default lifetime (seconds) for stores built by the factory; 0 disables
    default_ttl: float

    # Debug
    debug_log_events: bool


def get_settings() -> Settings:
    data_dir = os.getenv("KEYVAL_DATA_DIR", ".keyval")
    redis_url = os.getenv("KEYVAL_REDIS_URL", "redis://localhost:6379/0")
    namespace = os.getenv("KEYVAL_NAMESPACE", "*")
    default_ttl = _env_float("KEYVAL_DEFAULT_TTL", 0.0)
    debug_log_events = _env_bool("KEYVAL_DEBUG_LOG_EVENTS", False)

    return Settings(
        data_dir=data_dir,
        redis_url=redis_url,
        namespace=namespace,
        default_ttl=default_ttl,
        debug_log_events=debug_log_events,
    )
