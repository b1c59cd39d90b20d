"""Async Redis client factory, instrumentation and health checks."""

import asyncio
import time
from typing import Any, Optional, Protocol, Tuple

from loguru import logger
from redis import asyncio as aioredis

from .config import Config


class RedisMetricsHandler(Protocol):
    """Receives one timing and one count per Redis command."""

    def timing(self, name: str, value_ms: float, tags: dict[str, str]) -> None: ...

    def increment(self, name: str, value: int, tags: dict[str, str]) -> None: ...


def get_pool_stats(pool: aioredis.ConnectionPool) -> dict[str, float]:
    """Connections checked out of ``pool`` against its limit."""
    in_use = len(getattr(pool, "_in_use_connections", None) or ())
    limit = pool.max_connections or 0
    return {
        "in_use": float(in_use),
        "max": float(limit),
        "utilization": in_use / limit if limit else 0.0,
    }


def _command_name(args: tuple) -> str:
    if not args:
        return "unknown"
    name = args[0]
    if isinstance(name, bytes):
        return name.decode("utf-8", errors="ignore")
    return str(name)


class InstrumentedRedis(aioredis.Redis):
    """Client that times every command and warns when one runs slow."""

    metrics_handler: Optional[RedisMetricsHandler] = None
    slow_operation_ms: float = Config.REDIS_SLOW_OPERATION_MS

    async def execute_command(self, *args: Any, **options: Any) -> Any:
        started = time.perf_counter()
        try:
            return await super().execute_command(*args, **options)
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            command = _command_name(args)
            if self.metrics_handler is not None:
                tags = {"command": command}
                self.metrics_handler.timing("redis.operation.duration_ms", elapsed_ms, tags)
                self.metrics_handler.increment("redis.operation.count", 1, tags)
            if elapsed_ms > self.slow_operation_ms:
                logger.warning(
                    "Slow Redis operation detected (command={}, duration_ms={:.2f})",
                    command,
                    elapsed_ms,
                )


async def create_redis_client(
    url: Optional[str] = None,
    max_connections: Optional[int] = None,
    metrics_handler: Optional[RedisMetricsHandler] = None,
) -> InstrumentedRedis:
    """
    Create a pooled Redis client and verify it answers PING.

    Connection attempts are retried with exponential backoff; the last
    connection error is raised once ``Config.REDIS_CONNECT_RETRIES`` is
    exhausted.

    Args:
        url: Redis URL (defaults to ``Config.REDIS_URL``)
        max_connections: Pool size (defaults to ``Config.REDIS_MAX_CONNECTIONS``)
        metrics_handler: Optional sink for per-command timings

    Returns:
        Connected client owning its own connection pool
    """
    url = url or Config.REDIS_URL
    max_connections = max_connections or Config.REDIS_MAX_CONNECTIONS

    for attempt in range(1, Config.REDIS_CONNECT_RETRIES + 1):
        pool = aioredis.ConnectionPool.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=max_connections,
            socket_connect_timeout=Config.REDIS_SOCKET_CONNECT_TIMEOUT,
            socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
        )
        client = InstrumentedRedis(connection_pool=pool)
        client.metrics_handler = metrics_handler
        try:
            await client.ping()
            logger.debug("Connected to Redis (max_connections={})", max_connections)
            return client
        except (aioredis.ConnectionError, aioredis.TimeoutError) as exc:
            logger.warning(
                "Redis connection attempt {}/{} failed: {}",
                attempt,
                Config.REDIS_CONNECT_RETRIES,
                exc,
            )
            await close_redis_client(client)
            if attempt >= Config.REDIS_CONNECT_RETRIES:
                logger.error("Redis connection retries exhausted")
                raise
            backoff = min(
                Config.REDIS_CONNECT_RETRY_DELAY * (2 ** (attempt - 1)),
                Config.REDIS_CONNECT_RETRY_MAX_DELAY,
            )
            await asyncio.sleep(backoff)

    raise RuntimeError("REDIS_CONNECT_RETRIES must be >= 1")


async def close_redis_client(client: aioredis.Redis) -> None:
    """Close a client and disconnect the pool it owns."""
    pool = client.connection_pool
    await client.aclose()
    if pool is not None:
        await pool.disconnect()


async def check_redis_health(client: aioredis.Redis) -> Tuple[bool, str]:
    """Ping Redis to verify connectivity and return status."""
    try:
        result = await client.ping()
        if result is True or result == "PONG":
            return True, "Redis ping succeeded"
        return False, f"Unexpected Redis ping response: {result}"
    except (aioredis.ConnectionError, aioredis.TimeoutError) as exc:
        return False, f"Redis connection failed: {exc}"
    except aioredis.RedisError as exc:
        return False, f"Redis health check error: {exc}"
