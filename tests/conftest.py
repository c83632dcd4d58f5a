"""
Pytest configuration and fixtures for cache store tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Generator
from unittest.mock import patch

import pytest

from respcache.config import clear_settings_cache
from respcache.store import SqliteCacheStore
from respcache.types import CacheKey, CacheValue

NOW = 1_700_000_000_000


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def make_key(
    origin: str = "https://example.com",
    path: str = "index.html",
    method: str = "GET",
    headers: dict[str, Any] | None = None,
) -> CacheKey:
    """Create a test cache key."""
    return CacheKey(origin=origin, method=method, path=path, headers=headers)


def make_value(
    body: bytes | None = b"hello world",
    cached_at: int = NOW,
    ttl: int = 60_000,
    **overrides: Any,
) -> CacheValue:
    """Create a test cache value that goes stale and is deleted after ttl ms."""
    fields: dict[str, Any] = {
        "status_code": 200,
        "status_message": "OK",
        "cached_at": cached_at,
        "stale_at": cached_at + ttl // 2,
        "delete_at": cached_at + ttl,
        "headers": {"content-type": "text/plain"},
        "body": body,
    }
    fields.update(overrides)
    return CacheValue(**fields)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> Generator[SqliteCacheStore, None, None]:
    """Create an in-memory store driven by the fake clock."""
    cache = SqliteCacheStore(clock=clock)
    yield cache
    cache.close()


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide store configuration through environment variables."""
    env_vars = {
        "CACHE_LOCATION": str(temp_dir / "cache" / "responses.db"),
        "CACHE_MAX_COUNT": "100",
        "CACHE_MAX_ENTRY_SIZE": "1024",
        "CACHE_LOOSE": "false",
        "CACHE_JOURNAL_MODE": "wal",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
