"""Command-line lock administration and Redis health probe."""

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from loguru import logger
from redis import asyncio as aioredis

from .config import Config
from .exceptions import LockStoreError
from .locks import DistributedLock, LockOptions
from .redis_client import check_redis_health, close_redis_client, create_redis_client

EXIT_OK = 0
EXIT_REFUSED = 1
EXIT_STORE_ERROR = 2
# Same status argparse exits with on bad arguments
EXIT_USAGE = 2


def configure_logging(level: str) -> None:
    """Route loguru output to stderr with the standard format."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> | <level>{message}</level>",
        level=level.upper(),
    )


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be > 0, got {number}")
    return number


def _lock_key(value: str) -> str:
    if not value.strip():
        raise argparse.ArgumentTypeError("lock key must not be empty")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="batchguard",
        description="Inspect and manage Redis-backed distributed locks",
    )
    parser.add_argument("--redis-url", default=None, help="Redis URL (default: REDIS_URL)")
    parser.add_argument("--log-level", default="WARNING", help="Log level (default: WARNING)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    acquire = subparsers.add_parser("acquire", help="Acquire a lock and print its token")
    acquire.add_argument("key", type=_lock_key)
    acquire.add_argument(
        "--ttl-ms",
        type=_positive_int,
        default=Config.LOCK_DEFAULT_TTL_MS,
        help=f"Lease TTL in milliseconds (default: {Config.LOCK_DEFAULT_TTL_MS})",
    )

    release = subparsers.add_parser("release", help="Release a lock held by TOKEN")
    release.add_argument("key", type=_lock_key)
    release.add_argument("token")

    status = subparsers.add_parser("status", help="Show whether a lock is held")
    status.add_argument("key", type=_lock_key)

    subparsers.add_parser("health", help="Ping Redis")

    return parser


async def _run_lock_command(args: argparse.Namespace, lock: DistributedLock) -> int:
    if args.command == "acquire":
        token = await lock.acquire_lock(args.key, LockOptions(ttl_ms=args.ttl_ms))
        if token is None:
            print(f"Lock '{args.key}' is held by another owner")
            return EXIT_REFUSED
        print(token)
        return EXIT_OK

    if args.command == "release":
        if await lock.release_lock(args.key, args.token):
            print(f"Released lock '{args.key}'")
            return EXIT_OK
        print(f"Lock '{args.key}' not released (token invalid or lease expired)")
        return EXIT_REFUSED

    remaining = await lock.ttl_remaining(args.key)
    if remaining is not None:
        print(f"locked ({remaining} ms left)")
    elif await lock.is_locked(args.key):
        print("locked")
    else:
        print("unlocked")
    return EXIT_OK


async def run(args: argparse.Namespace) -> int:
    try:
        client = await create_redis_client(url=args.redis_url)
    except aioredis.RedisError as e:
        logger.error(f"Could not connect to Redis: {e}")
        if args.command == "health":
            print(f"Redis connection failed: {e}")
            return EXIT_REFUSED
        return EXIT_STORE_ERROR

    try:
        if args.command == "health":
            healthy, message = await check_redis_health(client)
            print(message)
            return EXIT_OK if healthy else EXIT_REFUSED
        return await _run_lock_command(args, DistributedLock(client))
    except LockStoreError as e:
        logger.error(str(e))
        return EXIT_STORE_ERROR
    except ValueError as e:
        logger.error(f"Invalid arguments: {e}")
        print(f"Invalid arguments: {e}")
        return EXIT_USAGE
    finally:
        await close_redis_client(client)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for ``python -m batchguard``."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        Config.validate()
    except ValueError as e:
        logger.error(str(e))
        return EXIT_STORE_ERROR
    return asyncio.run(run(args))
