"""Cache warmup: run registered providers, each under its own distributed lock."""

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from loguru import logger

from .config import Config
from .exceptions import LockStoreError, LockUnavailableError
from .locks import DistributedLock, LockOptions

WARMUP_LOCK_PREFIX = "cache:warmup:"


@dataclass
class CacheWarmupProvider:
    """
    A unit of cache warmup work.

    Attributes:
        key: Unique provider key, also the lock name suffix
        warmup: Async callable that fills the cache
        priority: Higher numbers run first
    """

    key: str
    warmup: Callable[[], Awaitable[None]]
    priority: int = 0


@dataclass
class WarmupReport:
    """Per-provider outcome of one ``warmup_cache`` run."""

    completed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.completed) + len(self.skipped) + len(self.failed)


class CacheWarmupService:
    """
    Warm caches on startup without duplicating work across instances.

    Each provider runs inside ``with_lock("cache:warmup:{key}")``, so when
    several processes start together only one of them warms a given
    provider; the others skip it.
    """

    def __init__(
        self,
        lock: DistributedLock,
        enabled: Optional[bool] = None,
        timeout_ms: Optional[int] = None,
    ):
        self._lock = lock
        self._enabled = Config.WARMUP_ENABLED if enabled is None else enabled
        self._timeout_ms = Config.WARMUP_TIMEOUT_MS if timeout_ms is None else timeout_ms
        self._providers: list[CacheWarmupProvider] = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    def register_provider(self, provider: CacheWarmupProvider) -> None:
        """Register a cache warmup provider."""
        self._providers.append(provider)
        logger.debug(f"Registered cache warmup provider: {provider.key}")

    def get_providers(self) -> list[CacheWarmupProvider]:
        """All registered providers, highest priority first."""
        return sorted(self._providers, key=lambda p: p.priority, reverse=True)

    async def warmup_cache(self) -> WarmupReport:
        """
        Run every provider once.

        Provider errors are logged and reported, never raised.

        Returns:
            WarmupReport listing completed, skipped and failed providers
        """
        report = WarmupReport()
        if not self._enabled:
            logger.info("Cache warmup is disabled")
            return report

        providers = self.get_providers()
        logger.info(f"Starting cache warmup with {len(providers)} providers")
        options = LockOptions(ttl_ms=self._timeout_ms)

        for provider in providers:
            try:
                await self._lock.with_lock(
                    f"{WARMUP_LOCK_PREFIX}{provider.key}", provider.warmup, options
                )
            except LockUnavailableError:
                logger.info(f"Cache warmup for {provider.key} is running elsewhere, skipping")
                report.skipped.append(provider.key)
            except LockStoreError as e:
                logger.error(f"Lock store unavailable for warmup of {provider.key}: {e}")
                report.failed[provider.key] = str(e)
            except Exception as e:
                logger.error(f"Failed to warm up cache for {provider.key}: {e}")
                report.failed[provider.key] = str(e)
            else:
                logger.debug(f"Successfully warmed up cache for: {provider.key}")
                report.completed.append(provider.key)

        logger.info(
            f"Cache warmup completed: {len(report.completed)} completed, "
            f"{len(report.skipped)} skipped, {len(report.failed)} failed"
        )
        return report
