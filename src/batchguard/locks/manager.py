"""Redis-backed distributed lock."""

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar

from loguru import logger
from redis import asyncio as aioredis

from ..config import Config
from ..exceptions import LockStoreError, LockUnavailableError
from .models import Lease, LockOptions, lock_store_key

T = TypeVar("T")

# GET and DEL run as one server-side step; the key is only deleted while it
# still holds the caller's token.
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class DistributedLock:
    """
    Advisory mutual exclusion across processes, coordinated through Redis.

    Features:
    - Acquire a named lease with ``SET NX PX`` (first atomic write wins)
    - Release only with the token returned at acquisition
    - TTL expiry so a crashed holder cannot keep the lock forever
    - ``with_lock`` / ``lock`` helpers that always release on exit

    Outcomes:
    - Contention is data: ``acquire_lock`` returns None, ``release_lock``
      returns False
    - Outages are errors: Redis failures raise ``LockStoreError``

    The lease is not renewed. A critical section that runs longer than its
    TTL loses exclusivity; pick a TTL above the expected duration.
    """

    def __init__(self, redis: aioredis.Redis, default_options: Optional[LockOptions] = None):
        """
        Args:
            redis: Connected async Redis client (``decode_responses=True``)
            default_options: Options used when a call passes none
        """
        self._redis = redis
        self._default_options = default_options or LockOptions()

    @property
    def default_options(self) -> LockOptions:
        return self._default_options

    @staticmethod
    def _validate_key(key: str) -> None:
        if not key or not key.strip():
            raise ValueError("lock key must not be empty")

    async def acquire_lease(
        self, key: str, options: Optional[LockOptions] = None
    ) -> Lease | None:
        """
        Try once to acquire the lease for ``key``.

        Args:
            key: Resource identifier (must not be empty)
            options: Lock options; ``ttl_ms`` defaults to 30 seconds

        Returns:
            Lease if acquired, None if another holder's lease is live

        Raises:
            ValueError: If key is empty
            LockStoreError: If Redis is unreachable or errors
        """
        self._validate_key(key)
        opts = options or self._default_options
        token = str(uuid.uuid4())
        store_key = lock_store_key(key)

        try:
            acquired = await self._redis.set(store_key, token, nx=True, px=opts.ttl_ms)
        except aioredis.RedisError as e:
            logger.error(f"Redis error acquiring lock for {key}: {e}")
            raise LockStoreError(key, "acquire", e) from e

        if not acquired:
            logger.debug(f"Lock for {key} is held by another owner")
            return None

        logger.debug(f"Acquired lock for {key} (ttl={opts.ttl_ms}ms)")
        return Lease.create(key=key, token=token, ttl_ms=opts.ttl_ms)

    async def acquire_lock(
        self, key: str, options: Optional[LockOptions] = None
    ) -> str | None:
        """
        Try once to acquire the lock for ``key``.

        Never blocks or retries; see ``acquire_with_retry`` for that.

        Returns:
            The lease token to pass to ``release_lock``, or None if held
        """
        lease = await self.acquire_lease(key, options)
        return lease.token if lease is not None else None

    async def release_lock(self, key: str, token: str) -> bool:
        """
        Release the lease for ``key`` if ``token`` still owns it.

        Returns:
            True if this call deleted the lease, False if the stored token
            differs (expired, re-acquired by someone else) or none exists

        Raises:
            LockStoreError: If Redis is unreachable or errors
        """
        self._validate_key(key)
        if not token:
            logger.warning(f"Refusing to release lock for {key} with empty token")
            return False

        try:
            result = await self._redis.eval(RELEASE_SCRIPT, 1, lock_store_key(key), token)
        except aioredis.RedisError as e:
            logger.error(f"Redis error releasing lock for {key}: {e}")
            raise LockStoreError(key, "release", e) from e

        released = int(result or 0) == 1
        if released:
            logger.debug(f"Released lock for {key}")
        else:
            logger.warning(f"Lock for {key} was not held by this token (expired or taken over)")
        return released

    async def is_locked(self, key: str) -> bool:
        """
        Check whether any live lease exists for ``key``.

        Advisory only: the answer can be stale as soon as it is returned.
        """
        self._validate_key(key)
        try:
            return bool(await self._redis.exists(lock_store_key(key)))
        except aioredis.RedisError as e:
            logger.error(f"Redis error checking lock for {key}: {e}")
            raise LockStoreError(key, "is_locked", e) from e

    async def ttl_remaining(self, key: str) -> int | None:
        """Milliseconds left on the live lease for ``key``, None if unlocked."""
        self._validate_key(key)
        try:
            remaining = await self._redis.pttl(lock_store_key(key))
        except aioredis.RedisError as e:
            logger.error(f"Redis error reading TTL for {key}: {e}")
            raise LockStoreError(key, "ttl", e) from e
        # -2: no such key, -1: key without expiry
        if remaining is None or remaining < 0:
            return None
        return int(remaining)

    async def _release_after_use(self, lease: Lease) -> None:
        try:
            released = await self.release_lock(lease.key, lease.token)
        except LockStoreError as e:
            logger.error(
                f"Error releasing lock for {lease.key}: {e}; "
                f"lease stays held until its {lease.ttl_ms}ms TTL expires"
            )
            return
        if not released:
            logger.warning(
                f"Critical section for {lease.key} outlived its lease "
                f"(ttl={lease.ttl_ms}ms); exclusivity was not guaranteed"
            )

    @asynccontextmanager
    async def lock(
        self, key: str, options: Optional[LockOptions] = None
    ) -> AsyncIterator[Lease]:
        """
        Hold the lock for the duration of an ``async with`` block.

        Raises:
            LockUnavailableError: If another holder's lease is live
            LockStoreError: If Redis fails during acquisition
        """
        lease = await self.acquire_lease(key, options)
        if lease is None:
            raise LockUnavailableError(key)
        try:
            yield lease
        finally:
            await self._release_after_use(lease)

    async def with_lock(
        self,
        key: str,
        fn: Callable[[], Awaitable[T]],
        options: Optional[LockOptions] = None,
    ) -> T:
        """
        Run ``fn`` while holding the lock for ``key``.

        Fails fast if the lock is held. The lease is released on every exit
        path of ``fn``; an error raised by ``fn`` propagates unchanged.

        A Redis failure during the release is logged, not raised, so it never
        replaces ``fn``'s outcome. In that case the lease is still held and
        other callers stay locked out until its TTL expires.

        Returns:
            Whatever ``fn`` returns

        Raises:
            LockUnavailableError: If another holder's lease is live
            LockStoreError: If Redis fails during acquisition
        """
        async with self.lock(key, options):
            return await fn()


async def acquire_with_retry(
    lock: DistributedLock,
    key: str,
    options: Optional[LockOptions] = None,
    retry_delay_ms: Optional[int] = None,
    max_retries: Optional[int] = None,
) -> str | None:
    """
    Poll ``acquire_lock`` until it succeeds or attempts run out.

    Args:
        lock: Lock manager to acquire through
        key: Resource identifier
        options: Lock options forwarded to each attempt
        retry_delay_ms: Pause between attempts (default ``Config.LOCK_RETRY_DELAY_MS``)
        max_retries: Total attempts (default ``Config.LOCK_MAX_RETRIES``)

    Returns:
        Token on success, None if every attempt found the lock held

    Raises:
        LockStoreError: Store failures are not retried
    """
    delay_ms = Config.LOCK_RETRY_DELAY_MS if retry_delay_ms is None else retry_delay_ms
    attempts = Config.LOCK_MAX_RETRIES if max_retries is None else max_retries
    if attempts < 1:
        raise ValueError(f"max_retries must be >= 1, got {attempts}")

    for attempt in range(1, attempts + 1):
        token = await lock.acquire_lock(key, options)
        if token is not None:
            return token
        if attempt < attempts:
            await asyncio.sleep(delay_ms / 1000.0)

    logger.warning(f"Failed to acquire lock for {key} after {attempts} attempts")
    return None
