from __future__ import annotations

from typing import Any


class KeyValError(Exception):
    """Base error for input validation in the key-value core."""


class InvalidPath(KeyValError, ValueError):
    def __init__(self, path: Any):
        self.path = path
        super().__init__(f"Path must be a non-empty sequence of segments, got {path!r}")


class InvalidEvent(KeyValError, ValueError):
    def __init__(self, event_type: Any):
        self.event_type = event_type
        super().__init__(f"Invalid event type: {event_type!r}")


class InvalidExpires(KeyValError, TypeError):
    def __init__(self, expires: Any):
        self.expires = expires
        super().__init__(f"Invalid expires value: {expires!r}")


class InvalidBulkArgument(KeyValError, TypeError):
    def __init__(self, arg: Any):
        self.arg = arg
        super().__init__(f"Bulk-load argument must be a mapping, got {type(arg).__name__}")


class HashFieldExpected(KeyValError, ValueError):
    """Hashed bulk-load was given a bare value instead of a metadata mapping."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"A hash expected for field {key!r}")
