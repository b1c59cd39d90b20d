"""Configuration and state models for the bounded task pool."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from ..config import Config


@dataclass(frozen=True)
class PoolConfig:
    """
    Concurrency and retry settings for ``BoundedTaskPool``.

    Attributes:
        max_concurrent: Ceiling on items being worked on at once
        retry_attempts: Tries per item, including the first
        initial_retry_delay_ms: Backoff before the second try
        max_retry_delay_ms: Upper bound on any single backoff
        progress_log_interval: Log progress every N settled items (0 disables)
    """

    max_concurrent: int = field(default_factory=lambda: Config.POOL_MAX_CONCURRENT)
    retry_attempts: int = field(default_factory=lambda: Config.POOL_RETRY_ATTEMPTS)
    initial_retry_delay_ms: int = field(
        default_factory=lambda: Config.POOL_INITIAL_RETRY_DELAY_MS
    )
    max_retry_delay_ms: int = field(default_factory=lambda: Config.POOL_MAX_RETRY_DELAY_MS)
    progress_log_interval: int = field(
        default_factory=lambda: Config.POOL_PROGRESS_LOG_INTERVAL
    )

    def __post_init__(self):
        if self.max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {self.max_concurrent}")
        if self.retry_attempts < 1:
            raise ValueError(f"retry_attempts must be >= 1, got {self.retry_attempts}")
        if self.initial_retry_delay_ms < 0:
            raise ValueError(
                f"initial_retry_delay_ms must be >= 0, got {self.initial_retry_delay_ms}"
            )
        if self.max_retry_delay_ms < self.initial_retry_delay_ms:
            raise ValueError(
                "max_retry_delay_ms must be >= initial_retry_delay_ms, "
                f"got {self.max_retry_delay_ms} < {self.initial_retry_delay_ms}"
            )
        if self.progress_log_interval < 0:
            raise ValueError(
                f"progress_log_interval must be >= 0, got {self.progress_log_interval}"
            )

    def backoff_delay_ms(self, attempt: int) -> int:
        """Delay after the zero-based ``attempt`` failed, capped at ``max_retry_delay_ms``."""
        return min(self.initial_retry_delay_ms * (2**attempt), self.max_retry_delay_ms)


@dataclass(frozen=True)
class ItemFailure:
    """An item that exhausted its retry budget."""

    index: int
    item: Any
    attempts: int
    error: Exception


@dataclass(frozen=True)
class ProcessingState:
    """
    Immutable snapshot of one ``process`` call.

    ``results`` maps item index to output; ``errors`` holds one
    ``ItemFailure`` per terminally failed item. Every settled item is in
    exactly one of the two.
    """

    items: tuple
    results: Mapping[int, Any]
    errors: tuple
    processed_count: int
    in_flight: int
    start_time: datetime
    finished_at: Optional[datetime] = None

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def succeeded_count(self) -> int:
        return len(self.results)

    @property
    def failed_count(self) -> int:
        return len(self.errors)

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None

    @property
    def elapsed_seconds(self) -> float:
        end = self.finished_at or datetime.now(timezone.utc)
        return max((end - self.start_time).total_seconds(), 0.0)

    @property
    def rate(self) -> float:
        """Settled items per second."""
        elapsed = self.elapsed_seconds
        if elapsed <= 0:
            return 0.0
        return self.processed_count / elapsed

    @property
    def estimated_remaining_seconds(self) -> Optional[float]:
        rate = self.rate
        if rate <= 0:
            return None
        return (self.total - self.processed_count) / rate

    def ordered_results(self) -> list:
        """Successful outputs in input order."""
        return [self.results[index] for index in sorted(self.results)]
