"""
Distributed locks.

Redis-backed mutual exclusion with TTL expiry and token-checked release.
"""

from .manager import DistributedLock, acquire_with_retry
from .models import Lease, LockOptions, lock_store_key

__all__ = [
    "DistributedLock",
    "Lease",
    "LockOptions",
    "acquire_with_retry",
    "lock_store_key",
]
