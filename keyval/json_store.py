from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def read_json(path: Path) -> Any | None:
    """
    Read JSON from disk.

    Returns None for missing or empty files. Invalid JSON and OS errors are
    raised to the caller.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    if not raw.strip():
        return None
    return json.loads(raw)


def atomic_write_json(path: Path, payload: Any, *, indent: int = 2, sort_keys: bool = False) -> None:
    """
    Atomically write JSON to disk by writing to a temp file then replacing.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=indent, sort_keys=sort_keys)
        f.write("\n")
    tmp_path.replace(path)


def dumps_entry(entry: dict[str, Any]) -> str:
    """Compact text form of a value envelope, for string-only media."""
    return json.dumps(entry, separators=(",", ":"))


def loads_entry(raw: str | bytes | None) -> dict[str, Any] | None:
    """
    Parse a stored envelope. Raises ValueError when the text is not an
    envelope object.
    """
    if raw is None:
        return None
    doc = json.loads(raw)
    if not isinstance(doc, dict):
        raise ValueError(f"Stored entry is not an object: {raw!r}")
    return doc
