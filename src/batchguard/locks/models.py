"""Data models for distributed lock leases."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..config import Config


def lock_store_key(key: str) -> str:
    """Redis key holding the lease for ``key``."""
    return f"{Config.LOCK_KEY_PREFIX}{key}"


@dataclass(frozen=True)
class LockOptions:
    """
    Options for acquiring a distributed lock.

    Attributes:
        ttl_ms: Lease time-to-live in milliseconds. Redis drops the lease
            after this long even if it is never released.
    """

    ttl_ms: int = field(default_factory=lambda: Config.LOCK_DEFAULT_TTL_MS)

    def __post_init__(self):
        if self.ttl_ms <= 0:
            raise ValueError(f"ttl_ms must be > 0, got {self.ttl_ms}")


@dataclass(frozen=True)
class Lease:
    """
    One successful lock acquisition.

    The ``token`` proves ownership; only a caller presenting it can release
    the lease. ``expires_at`` is computed locally and is advisory: Redis is
    the authority on whether the lease is still live.
    """

    key: str
    token: str
    ttl_ms: int
    acquired_at: datetime
    expires_at: datetime

    @classmethod
    def create(cls, key: str, token: str, ttl_ms: int) -> "Lease":
        """
        Create a new Lease with validation.

        Raises:
            ValueError: If key or token is empty, or ttl_ms is not positive
        """
        if not key or not key.strip():
            raise ValueError("key must not be empty")
        if not token:
            raise ValueError("token must not be empty")
        if ttl_ms <= 0:
            raise ValueError(f"ttl_ms must be > 0, got {ttl_ms}")

        acquired_at = datetime.now(timezone.utc)
        return cls(
            key=key,
            token=token,
            ttl_ms=ttl_ms,
            acquired_at=acquired_at,
            expires_at=acquired_at + timedelta(milliseconds=ttl_ms),
        )

    @property
    def store_key(self) -> str:
        return lock_store_key(self.key)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once the local clock has passed ``expires_at``."""
        return (now or datetime.now(timezone.utc)) >= self.expires_at
