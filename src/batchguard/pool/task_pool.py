"""Bounded-concurrency task pool with per-item retry and exponential backoff."""

import asyncio
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from loguru import logger

from .models import ItemFailure, PoolConfig, ProcessingState

T = TypeVar("T")
R = TypeVar("R")


class BoundedTaskPool:
    """
    Run a batch of async operations under a concurrency ceiling.

    Scheduling is a sliding window, not fixed-size batches: as soon as any
    in-flight item settles, the next pending item starts. An item keeps its
    slot while it backs off between retries.

    Each item is retried independently with exponential backoff. An item
    that exhausts ``retry_attempts`` is recorded in the processing state and
    never aborts its siblings or the batch.

    One ``process`` call runs at a time per pool instance.
    """

    def __init__(self, config: Optional[PoolConfig] = None):
        self._config = config or PoolConfig()
        self._running = False
        self._items: tuple = ()
        self._results: dict[int, Any] = {}
        self._errors: list[ItemFailure] = []
        self._processed_count = 0
        self._in_flight = 0
        self._start_time = datetime.now(timezone.utc)
        self._finished_at: Optional[datetime] = None

    @property
    def config(self) -> PoolConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._running

    def get_state(self) -> ProcessingState:
        """Immutable snapshot of the current (or last) batch."""
        return ProcessingState(
            items=self._items,
            results=MappingProxyType(dict(self._results)),
            errors=tuple(self._errors),
            processed_count=self._processed_count,
            in_flight=self._in_flight,
            start_time=self._start_time,
            finished_at=self._finished_at,
        )

    def _reset(self, items: Iterable[Any]) -> None:
        self._items = tuple(items)
        self._results = {}
        self._errors = []
        self._processed_count = 0
        self._in_flight = 0
        self._start_time = datetime.now(timezone.utc)
        self._finished_at = None

    async def _process_with_retry(
        self, index: int, item: T, worker: Callable[[T], Awaitable[R]]
    ) -> R:
        attempts = self._config.retry_attempts
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                result = await worker(item)
                logger.debug(f"Successfully processed item {index} on attempt {attempt + 1}")
                return result
            except Exception as e:
                last_error = e
                if attempt < attempts - 1:
                    delay_ms = self._config.backoff_delay_ms(attempt)
                    logger.warning(
                        f"Error processing item {index} on attempt {attempt + 1}, "
                        f"retrying in {delay_ms}ms: {e}"
                    )
                    await self._backoff(delay_ms)

        raise last_error

    async def _backoff(self, delay_ms: int) -> None:
        await asyncio.sleep(delay_ms / 1000.0)

    async def _run_item(
        self,
        index: int,
        item: T,
        worker: Callable[[T], Awaitable[R]],
        completed: list,
    ) -> None:
        self._in_flight += 1
        try:
            result = await self._process_with_retry(index, item, worker)
        except Exception as e:
            self._errors.append(
                ItemFailure(
                    index=index,
                    item=item,
                    attempts=self._config.retry_attempts,
                    error=e,
                )
            )
            self._processed_count += 1
            logger.error(
                f"Item {index} failed after {self._config.retry_attempts} attempts: {e}"
            )
        else:
            self._results[index] = result
            completed.append(result)
            self._processed_count += 1
        finally:
            self._in_flight -= 1

        self._log_progress()

    def _log_progress(self) -> None:
        interval = self._config.progress_log_interval
        if not interval or self._processed_count % interval != 0:
            return
        state = self.get_state()
        eta = state.estimated_remaining_seconds
        eta_text = f"{int(eta // 60)}m {int(eta % 60)}s" if eta is not None else "unknown"
        percent = round(state.processed_count / state.total * 100) if state.total else 100
        logger.info(
            f"Progress: {state.processed_count}/{state.total} ({percent}%) | "
            f"Running: {state.in_flight} | "
            f"Failed: {state.failed_count} | "
            f"Rate: {state.rate:.2f}/s | "
            f"Est. remaining: {eta_text}"
        )

    async def process(
        self, items: Iterable[T], worker: Callable[[T], Awaitable[R]]
    ) -> list[R]:
        """
        Process every item through ``worker`` under the concurrency ceiling.

        Args:
            items: Ordered items to process
            worker: Async function mapping one item to one result; raising
                signals a retryable failure. It may be called more than once
                per item.

        Returns:
            Successful results in completion order. Failed items are only
            visible through ``get_state().errors``.

        Raises:
            RuntimeError: If this pool is already running a batch
            asyncio.CancelledError: If the call is cancelled; in-flight
                items are cancelled first
        """
        if self._running:
            raise RuntimeError("BoundedTaskPool is already processing a batch")

        self._reset(items)
        self._running = True
        completed: list[R] = []
        in_progress: set[asyncio.Task] = set()
        max_concurrent = self._config.max_concurrent

        logger.info(
            f"Processing {len(self._items)} items "
            f"(max_concurrent={max_concurrent}, retry_attempts={self._config.retry_attempts})"
        )

        try:
            for index, item in enumerate(self._items):
                if len(in_progress) >= max_concurrent:
                    done, in_progress = await asyncio.wait(
                        in_progress, return_when=asyncio.FIRST_COMPLETED
                    )
                    for task in done:
                        task.result()

                task = asyncio.create_task(
                    self._run_item(index, item, worker, completed),
                    name=f"batchguard-item-{index}",
                )
                in_progress.add(task)

            if in_progress:
                done, _ = await asyncio.wait(in_progress)
                for task in done:
                    task.result()
                in_progress = set()
        except BaseException:
            for task in in_progress:
                task.cancel()
            await asyncio.gather(*in_progress, return_exceptions=True)
            raise
        finally:
            self._finished_at = datetime.now(timezone.utc)
            self._running = False

        state = self.get_state()
        logger.info(
            f"Processed {state.total} items in {state.elapsed_seconds:.2f}s: "
            f"{state.succeeded_count} succeeded, {state.failed_count} failed"
        )
        return completed
