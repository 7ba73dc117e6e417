from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Generic, Optional, Tuple, TypeVar

import httpx
from loguru import logger

from ..errors import map_http_error
from ..metrics.registry import metrics_registry
from ..models import DeliveryResult
from .policy import RetryPolicy

T = TypeVar("T")
Dispatch = Callable[[T], Awaitable[Any]]


class SchedulerClosedError(RuntimeError):
    """Entry submitted after aclose()."""


class RequestScheduler(Generic[T]):
    """Single-consumer FIFO that paces dispatches and retries transient failures.

    Producers call :meth:`enqueue` and await the returned future, which always
    resolves to a :class:`DeliveryResult` and never raises. One drain task
    pops entries head-first, waits out the pacing interval, then runs the
    dispatch/retry loop for that entry before touching the next one
    (head-of-line blocking keeps delivery order equal to submission order).

    The drain task exits when the queue empties and is restarted by the next
    enqueue. ``enqueue`` contains no await point, so appending and the
    "is a drain task alive" check happen atomically on the event loop.
    """

    def __init__(
        self,
        dispatch: Dispatch[T],
        *,
        min_interval: float = 0.5,
        retry_policy: Optional[RetryPolicy] = None,
        scheduler_id: str = "default",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self._dispatch = dispatch
        self._min_interval = min_interval
        self._retry = retry_policy or RetryPolicy()
        self._id = scheduler_id
        self._clock = clock
        self._sleep = sleep

        self._queue: Deque[Tuple[T, asyncio.Future]] = deque()
        self._last_dispatch: Optional[float] = None
        self._drain_task: Optional[asyncio.Task] = None
        self._closed = False

    # ---------- properties ----------

    @property
    def scheduler_id(self) -> str:
        return self._id

    @property
    def pending(self) -> int:
        """Entries waiting for dispatch (the one being dispatched excluded)."""
        return len(self._queue)

    @property
    def draining(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    @property
    def min_interval(self) -> float:
        return self._min_interval

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    def reconfigure(
        self, *, min_interval: Optional[float] = None, retry_policy: Optional[RetryPolicy] = None
    ) -> None:
        """Swap pacing/retry settings; applies from the next dispatch on."""
        if min_interval is not None:
            if min_interval < 0:
                raise ValueError("min_interval must be >= 0")
            self._min_interval = min_interval
        if retry_policy is not None:
            self._retry = retry_policy

    # ---------- producer API ----------

    def enqueue(self, entry: T) -> "asyncio.Future[DeliveryResult]":
        """Queue an entry; the future resolves once it reaches a terminal outcome."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future[DeliveryResult] = loop.create_future()

        if self._closed:
            future.set_result(DeliveryResult.failed(SchedulerClosedError("scheduler closed"), 0))
            return future

        self._queue.append((entry, future))
        metrics_registry.queue_depth.labels(self._id).set(len(self._queue))

        if not self.draining:
            self._drain_task = loop.create_task(self._drain(), name=f"relaylog-drain-{self._id}")
            logger.debug(f"Scheduler {self._id}: drain task started")
        return future

    async def submit(self, entry: T) -> DeliveryResult:
        return await self.enqueue(entry)

    async def join(self) -> None:
        """Wait until every queued entry has been resolved."""
        while self.draining:
            task = self._drain_task
            await asyncio.shield(task)

    async def aclose(self) -> None:
        """Refuse new entries, then wait for the queue to drain."""
        self._closed = True
        await self.join()

    # ---------- drain loop ----------

    async def _drain(self) -> None:
        while self._queue:
            entry, future = self._queue.popleft()
            metrics_registry.queue_depth.labels(self._id).set(len(self._queue))

            if self._last_dispatch is not None:
                wait = self._min_interval - (self._clock() - self._last_dispatch)
                if wait > 0:
                    await self._sleep(wait)

            started = self._clock()
            result = await self._dispatch_with_retry(entry)
            self._last_dispatch = self._clock()

            outcome = "success" if result.success else "failed"
            metrics_registry.deliveries_total.labels(self._id, outcome).inc()
            metrics_registry.delivery_latency_ms.labels(self._id).observe(
                (self._last_dispatch - started) * 1000.0
            )
            if not future.done():
                future.set_result(result)

        logger.debug(f"Scheduler {self._id}: queue empty, drain task exiting")

    async def _dispatch_with_retry(self, entry: T) -> DeliveryResult:
        attempt = 0
        while True:
            try:
                result = await self._dispatch(entry)
                return DeliveryResult.ok(result, attempts=attempt + 1)
            except Exception as exc:
                # Unclassified failures keep their own type in the result
                error = map_http_error(exc) if isinstance(exc, httpx.HTTPError) else exc

                if not self._retry.should_retry(error, attempt):
                    if attempt:
                        logger.error(
                            f"Scheduler {self._id}: giving up after {attempt + 1} attempts: {error}"
                        )
                    else:
                        logger.error(f"Scheduler {self._id}: delivery failed: {error}")
                    return DeliveryResult.failed(error, attempts=attempt + 1)

                delay = self._retry.delay_for(error, attempt)
                reason = "rate_limited" if getattr(error, "rate_limited", False) else "transient"
                metrics_registry.delivery_retries_total.labels(self._id, reason).inc()
                logger.warning(
                    f"Scheduler {self._id}: attempt {attempt + 1} failed ({error}); "
                    f"retrying in {delay:.2f}s"
                )
                await self._sleep(delay)
                attempt += 1
