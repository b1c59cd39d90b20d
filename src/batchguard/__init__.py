"""batchguard - distributed locks and a bounded retrying task pool for batch jobs."""

__version__ = "0.1.0"

from .exceptions import BatchGuardError, LockError, LockStoreError, LockUnavailableError
from .locks import DistributedLock, Lease, LockOptions, acquire_with_retry
from .pool import BoundedTaskPool, ItemFailure, PoolConfig, ProcessingState

__all__ = [
    "BatchGuardError",
    "BoundedTaskPool",
    "DistributedLock",
    "ItemFailure",
    "Lease",
    "LockError",
    "LockOptions",
    "LockStoreError",
    "LockUnavailableError",
    "PoolConfig",
    "ProcessingState",
    "__version__",
    "acquire_with_retry",
]
