"""Tests for the Redis client factory, instrumentation and health check."""

import os
from unittest.mock import AsyncMock, Mock, patch

import pytest
from redis import asyncio as aioredis

from batchguard.config import Config
from batchguard.redis_client import (
    InstrumentedRedis,
    check_redis_health,
    close_redis_client,
    create_redis_client,
    get_pool_stats,
)

# ============================================================================
# HEALTH CHECK
# ============================================================================


@pytest.mark.asyncio
async def test_health_check_ok():
    client = AsyncMock()
    client.ping.return_value = True

    assert await check_redis_health(client) == (True, "Redis ping succeeded")


@pytest.mark.asyncio
async def test_health_check_connection_failure():
    client = AsyncMock()
    client.ping.side_effect = aioredis.ConnectionError("Connection refused")

    healthy, message = await check_redis_health(client)

    assert healthy is False
    assert "Redis connection failed" in message


@pytest.mark.asyncio
async def test_health_check_unexpected_reply():
    client = AsyncMock()
    client.ping.return_value = "NOPE"

    healthy, message = await check_redis_health(client)

    assert healthy is False
    assert "NOPE" in message


# ============================================================================
# CLIENT FACTORY
# ============================================================================


@pytest.mark.asyncio
async def test_create_client_retries_then_succeeds(monkeypatch):
    monkeypatch.setattr(Config, "REDIS_CONNECT_RETRIES", 3)
    monkeypatch.setattr(Config, "REDIS_CONNECT_RETRY_DELAY", 0)
    ping = AsyncMock(side_effect=[aioredis.ConnectionError("refused"), True])

    with patch.object(InstrumentedRedis, "ping", ping):
        client = await create_redis_client(url="redis://example:6379")

    try:
        assert isinstance(client, InstrumentedRedis)
        assert ping.await_count == 2
        kwargs = client.connection_pool.connection_kwargs
        assert kwargs["host"] == "example"
        assert kwargs["decode_responses"] is True
    finally:
        await close_redis_client(client)


@pytest.mark.asyncio
async def test_create_client_raises_when_retries_exhausted(monkeypatch):
    monkeypatch.setattr(Config, "REDIS_CONNECT_RETRIES", 2)
    monkeypatch.setattr(Config, "REDIS_CONNECT_RETRY_DELAY", 0)
    ping = AsyncMock(side_effect=aioredis.TimeoutError("timeout"))

    with patch.object(InstrumentedRedis, "ping", ping):
        with pytest.raises(aioredis.TimeoutError):
            await create_redis_client(url="redis://example:6379")

    assert ping.await_count == 2


@pytest.mark.asyncio
@pytest.mark.requires_redis
async def test_create_client_against_live_redis(redis_client):
    client = await create_redis_client(url=os.getenv("REDIS_URL", "redis://localhost:6379"))
    try:
        assert await check_redis_health(client) == (True, "Redis ping succeeded")
        stats = get_pool_stats(client.connection_pool)
        assert stats["max"] == float(Config.REDIS_MAX_CONNECTIONS)
    finally:
        await close_redis_client(client)


# ============================================================================
# INSTRUMENTATION
# ============================================================================


@pytest.mark.asyncio
async def test_instrumented_client_reports_timings():
    client = InstrumentedRedis.from_url("redis://example:6379", decode_responses=True)
    client.metrics_handler = Mock()

    with patch.object(aioredis.Redis, "execute_command", AsyncMock(return_value="v")):
        assert await client.execute_command("GET", "k") == "v"

    name, duration_ms, tags = client.metrics_handler.timing.call_args.args
    assert name == "redis.operation.duration_ms"
    assert duration_ms >= 0
    assert tags == {"command": "GET"}
    client.metrics_handler.increment.assert_called_once_with(
        "redis.operation.count", 1, {"command": "GET"}
    )
    await client.aclose()


@pytest.mark.asyncio
async def test_instrumented_client_logs_slow_commands(log_messages):
    client = InstrumentedRedis.from_url("redis://example:6379")
    client.slow_operation_ms = -1

    with patch.object(aioredis.Redis, "execute_command", AsyncMock(return_value=1)):
        await client.execute_command(b"EXISTS", "k")

    assert any("Slow Redis operation detected (command=EXISTS" in m for m in log_messages)
    await client.aclose()


def test_pool_stats_for_fresh_pool():
    pool = aioredis.ConnectionPool.from_url("redis://example:6379", max_connections=8)

    stats = get_pool_stats(pool)

    assert stats == {"in_use": 0.0, "max": 8.0, "utilization": 0.0}


@pytest.mark.asyncio
async def test_instrumented_client_runs_without_metrics_handler():
    client = InstrumentedRedis.from_url("redis://example:6379")

    with patch.object(aioredis.Redis, "execute_command", AsyncMock(return_value="PONG")):
        assert await client.execute_command() == "PONG"

    assert client.metrics_handler is None
    await client.aclose()
