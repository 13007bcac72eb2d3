from __future__ import annotations

import math
import time
from datetime import date, datetime
from typing import Any

from .errors import InvalidExpires

# Numbers below this are epoch seconds; at or above, epoch milliseconds.
SECONDS_THRESHOLD = 1e12


def now_ms() -> int:
    return int(time.time() * 1000)


def normalize_expires(expires: Any) -> int | None:
    """
    Normalize a caller-supplied expiry into absolute epoch milliseconds.

    Accepts datetime/date objects, epoch seconds or milliseconds, and ISO-8601
    strings. Returns None for empty input.
    """
    if isinstance(expires, bool):
        raise InvalidExpires(expires)
    if expires is None or expires == "" or expires == 0:
        return None

    if isinstance(expires, datetime):
        return int(expires.timestamp() * 1000)
    if isinstance(expires, date):
        return int(datetime(expires.year, expires.month, expires.day).timestamp() * 1000)

    if isinstance(expires, (int, float)):
        if not math.isfinite(expires):
            raise InvalidExpires(expires)
        if expires < SECONDS_THRESHOLD:
            return int(expires * 1000)
        return int(expires)

    if isinstance(expires, str):
        s = expires.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            return int(datetime.fromisoformat(s).timestamp() * 1000)
        except ValueError as e:
            raise InvalidExpires(expires) from e

    raise InvalidExpires(expires)


def is_expired(stored_expires: Any, key_level_expiry: bool, now: int | None = None) -> bool:
    if not key_level_expiry or not stored_expires:
        return False
    ts = now_ms() if now is None else int(now)
    return int(stored_expires) <= ts


def ttl_deadline(ttl: float, now: int | None = None) -> int:
    """Absolute expiry for an entry written now under a TTL given in seconds."""
    ts = now_ms() if now is None else int(now)
    return ts + int(ttl * 1000)
