from __future__ import annotations

import re
from pathlib import Path
from typing import Sequence

from .settings import get_settings

_UNSAFE_SEGMENT = re.compile(r"[/\\]")


def data_dir() -> Path:
    return Path(get_settings().data_dir)


def safe_segment(segment: str) -> str:
    return _UNSAFE_SEGMENT.sub("_", segment)


def store_file(base: Path, path: Sequence[str]) -> Path:
    """
    Location of the JSON document backing a store path:
      ["users", "a/b"] -> <base>/users/a_b.json
    """
    *parents, leaf = [safe_segment(p) for p in path]
    return base.joinpath(*parents) / f"{leaf}.json"
