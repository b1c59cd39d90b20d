"""Pytest fixtures and test utilities for the batchguard test suite."""

import os
import time
from typing import Any, Optional

import pytest
from redis import asyncio as aioredis

from batchguard.locks import DistributedLock
from batchguard.locks.manager import RELEASE_SCRIPT

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")


# ============================================================================
# IN-MEMORY STORE
# ============================================================================


class InMemoryLockStore:
    """
    Async stand-in for the Redis commands DistributedLock uses.

    Implements SET NX PX, EXISTS, PTTL, GET, DELETE and the release script,
    with millisecond expiry on a monotonic clock. Each method runs without
    awaiting, so it is atomic with respect to other coroutines.
    """

    def __init__(self):
        self._values: dict[str, str] = {}
        self._expires_at: dict[str, float] = {}
        self.calls: list[tuple] = []

    def _purge(self, key: str) -> None:
        deadline = self._expires_at.get(key)
        if deadline is not None and time.monotonic() >= deadline:
            self._values.pop(key, None)
            self._expires_at.pop(key, None)

    async def set(
        self, name: str, value: str, nx: bool = False, px: Optional[int] = None
    ) -> Optional[bool]:
        self.calls.append(("set", name, value, nx, px))
        self._purge(name)
        if nx and name in self._values:
            return None
        self._values[name] = value
        if px is not None:
            self._expires_at[name] = time.monotonic() + px / 1000.0
        else:
            self._expires_at.pop(name, None)
        return True

    async def get(self, name: str) -> Optional[str]:
        self._purge(name)
        return self._values.get(name)

    async def exists(self, *names: str) -> int:
        self.calls.append(("exists", *names))
        count = 0
        for name in names:
            self._purge(name)
            count += name in self._values
        return count

    async def pttl(self, name: str) -> int:
        self._purge(name)
        if name not in self._values:
            return -2
        deadline = self._expires_at.get(name)
        if deadline is None:
            return -1
        return int((deadline - time.monotonic()) * 1000)

    async def delete(self, *names: str) -> int:
        deleted = 0
        for name in names:
            self._purge(name)
            if self._values.pop(name, None) is not None:
                deleted += 1
            self._expires_at.pop(name, None)
        return deleted

    async def eval(self, script: str, numkeys: int, *keys_and_args: Any) -> int:
        self.calls.append(("eval", numkeys, *keys_and_args))
        assert script == RELEASE_SCRIPT, "only the release script is supported"
        key, token = keys_and_args[0], keys_and_args[1]
        self._purge(key)
        if self._values.get(key) == token:
            self._values.pop(key)
            self._expires_at.pop(key, None)
            return 1
        return 0

    async def ping(self) -> bool:
        return True


@pytest.fixture
def memory_store():
    """Fresh in-memory lock store per test."""
    return InMemoryLockStore()


@pytest.fixture
def lock(memory_store):
    """DistributedLock backed by the in-memory store."""
    return DistributedLock(memory_store)


# ============================================================================
# REDIS FIXTURES
# ============================================================================


@pytest.fixture
async def redis_client():
    """
    Provide a clean Redis connection, flushed before and after the test.

    Skips the test when no Redis server answers on REDIS_URL.
    """
    client = aioredis.from_url(
        REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
    )

    try:
        await client.ping()
    except (aioredis.ConnectionError, aioredis.TimeoutError, OSError):
        await client.aclose()
        pytest.skip(f"Redis not available at {REDIS_URL}")

    try:
        await client.flushdb()
        yield client
    finally:
        await client.flushdb()
        await client.aclose()


@pytest.fixture
def redis_lock(redis_client):
    """DistributedLock backed by a live Redis server."""
    return DistributedLock(redis_client)


# ============================================================================
# HELPER UTILITIES
# ============================================================================


@pytest.fixture
def log_messages():
    """Capture loguru messages emitted during the test."""
    from loguru import logger

    messages: list[str] = []
    handler_id = logger.add(lambda msg: messages.append(msg.record["message"]), format="{message}")
    yield messages
    logger.remove(handler_id)
