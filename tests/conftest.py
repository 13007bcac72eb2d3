from __future__ import annotations

import asyncio
import os
from pathlib import Path
import sys


import pytest


# Ensure the repository root (parent of ./tests) is importable during pytest collection
# without requiring an editable install.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def sandbox_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """
    Point the default data directory at a temp dir so tests never touch a real ./.keyval.
    """
    data = tmp_path / "data"
    monkeypatch.setenv("KEYVAL_DATA_DIR", str(data))
    return data


@pytest.fixture(scope="session")
def redis_url() -> str:
    """
    URL of a live Redis server; tests depending on it are skipped when none answers PING.
    """
    from redis.asyncio import Redis
    from redis.exceptions import RedisError

    url = os.getenv("KEYVAL_REDIS_URL", "redis://localhost:6379/0")

    async def _ping() -> bool:
        client = Redis.from_url(url, socket_connect_timeout=1)
        try:
            return bool(await client.ping())
        except (RedisError, OSError):
            return False
        finally:
            await client.aclose()

    if not asyncio.run(_ping()):
        pytest.skip(f"no Redis server at {url}")
    return url
