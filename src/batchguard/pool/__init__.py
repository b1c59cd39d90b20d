"""
Bounded-concurrency task pool.

Fans a batch of async work out under a concurrency ceiling, retrying each
item with exponential backoff.
"""

from .models import ItemFailure, PoolConfig, ProcessingState
from .task_pool import BoundedTaskPool

__all__ = [
    "BoundedTaskPool",
    "ItemFailure",
    "PoolConfig",
    "ProcessingState",
]
