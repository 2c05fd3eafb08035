"""
Rate gating utilities for animegate.

Serializes outbound operations so that dispatch starts are spaced at least
``min_interval`` seconds apart, protecting a single upstream origin.
"""

import asyncio
import logging
import threading
import time
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple

from ..types import GateClosed

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]


def _validate_interval(min_interval: float) -> None:
    """Validate gate spacing parameter."""
    if min_interval < 0:
        raise ValueError("min_interval must not be negative")


@dataclass
class RateGateConfig:
    """
    Rate gate configuration.

    Attributes:
        interval_ms: Minimum spacing between dispatch starts (milliseconds)
        name: Label used in logs and stats
    """

    interval_ms: int = 500
    name: str = "gate"

    def __post_init__(self) -> None:
        _validate_interval(self.interval_ms)

    @property
    def min_interval(self) -> float:
        return self.interval_ms / 1000.0


class RateGate:
    """
    Async FIFO gate enforcing a minimum spacing between dispatch starts.

    Usage:
        gate = RateGate(min_interval=0.5)
        html = await gate.submit(lambda: client.get(url))

    Every submission is dispatched exactly once, in submission order.
    Operations run one after another inside a single drain task; an
    operation that outlasts ``min_interval`` owes no extra delay.
    """

    def __init__(
        self,
        min_interval: float = 0.5,
        name: str = "gate",
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate gate.

        Args:
            min_interval: Minimum seconds between dispatch starts
            name: Label used in logs and stats
            clock: Monotonic time source
        """
        _validate_interval(min_interval)
        self._min_interval = float(min_interval)
        self._name = name
        self._clock = clock

        self._pending: Deque[Tuple[Operation, asyncio.Future]] = deque()
        self._last_dispatch: Optional[float] = None
        self._drain_task: Optional[asyncio.Task] = None
        self._closed = False

        # Stats
        self._dispatched = 0
        self._failed = 0
        self._throttled_count = 0
        self._total_wait_time = 0.0

    @classmethod
    def from_config(cls, config: RateGateConfig) -> "RateGate":
        return cls(min_interval=config.min_interval, name=config.name)

    @property
    def min_interval(self) -> float:
        """Configured spacing in seconds."""
        return self._min_interval

    @property
    def name(self) -> str:
        return self._name

    @property
    def pending(self) -> int:
        """Number of submissions waiting for dispatch."""
        return len(self._pending)

    @property
    def last_dispatch(self) -> Optional[float]:
        """Clock reading at the most recent dispatch start."""
        return self._last_dispatch

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def submit(self, operation: Operation) -> Any:
        """
        Queue an operation and wait for its outcome.

        Args:
            operation: Zero-argument callable returning an awaitable

        Returns:
            Whatever the operation returns

        Raises:
            GateClosed: If the gate was closed before dispatch
            Exception: Whatever the operation raises, unchanged
        """
        if self._closed:
            raise GateClosed(self._name)

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending.append((operation, future))
        if self._drain_task is None:
            self._drain_task = loop.create_task(self._drain())
        return await future

    def _remaining_wait(self) -> float:
        if self._last_dispatch is None:
            return 0.0
        elapsed = self._clock() - self._last_dispatch
        return max(0.0, self._min_interval - elapsed)

    async def _drain(self) -> None:
        """Dispatch queued operations until the queue is empty."""
        try:
            while self._pending:
                wait = self._remaining_wait()
                if wait > 0:
                    self._throttled_count += 1
                    self._total_wait_time += wait
                    logger.debug(f"{self._name}: waiting {wait:.3f}s before next dispatch")
                    await asyncio.sleep(wait)

                operation, future = self._pending.popleft()
                if future.done():
                    # Caller stopped waiting before dispatch
                    continue

                self._last_dispatch = self._clock()
                self._dispatched += 1
                await self._run(operation, future)
        finally:
            self._drain_task = None
            if self._pending and not self._closed:
                # Cancelled mid-backlog: hand the queue to a fresh drain
                self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _run(self, operation: Operation, future: asyncio.Future) -> None:
        # Own task, so the operation cancelling itself is told apart from
        # the drain being cancelled
        task = asyncio.ensure_future(operation())
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            if not future.done():
                future.cancel()
            raise

        if task.cancelled():
            self._failed += 1
            logger.debug(f"{self._name}: dispatched operation was cancelled")
            if not future.done():
                future.cancel()
            return

        exc = task.exception()
        if exc is not None:
            self._failed += 1
            logger.debug(f"{self._name}: dispatched operation failed: {exc!r}")
            if not future.done():
                future.set_exception(exc)
        elif not future.done():
            future.set_result(task.result())

    async def close(self) -> None:
        """
        Close the gate.

        Later submissions fail with GateClosed, and so do queued
        submissions that have not been dispatched yet. An operation that is
        already running is allowed to finish.
        """
        self._closed = True
        while self._pending:
            _, future = self._pending.popleft()
            if not future.done():
                future.set_exception(GateClosed(self._name))
        task = self._drain_task
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

    def get_stats(self) -> dict:
        """
        Get gate statistics.

        Returns:
            Dictionary with:
                - dispatched: Operations started
                - failed: Dispatched operations that raised
                - throttled_count: Dispatches that had to wait for spacing
                - total_wait_time: Total spacing wait (seconds)
                - pending: Submissions still queued
                - min_interval: Configured spacing (seconds)
                - closed: Whether the gate rejects submissions
        """
        return {
            "name": self._name,
            "dispatched": self._dispatched,
            "failed": self._failed,
            "throttled_count": self._throttled_count,
            "total_wait_time": self._total_wait_time,
            "pending": len(self._pending),
            "min_interval": self._min_interval,
            "closed": self._closed,
        }


class RateGateSync:
    """
    Thread-based rate gate for non-async code.

    Same contract as RateGate: FIFO dispatch, minimum spacing between
    dispatch starts, one drain loop. The queue, ``last_dispatch`` and the
    drain flag are guarded by a lock; the drain runs on a worker thread.
    """

    def __init__(
        self,
        min_interval: float = 0.5,
        name: str = "gate",
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate gate.

        Args:
            min_interval: Minimum seconds between dispatch starts
            name: Label used in logs and stats
            clock: Monotonic time source
        """
        _validate_interval(min_interval)
        self._min_interval = float(min_interval)
        self._name = name
        self._clock = clock

        self._lock = threading.Lock()
        self._pending: Deque[Tuple[Callable[[], Any], Future]] = deque()
        self._last_dispatch: Optional[float] = None
        self._draining = False
        self._closed = False
        self._dispatched = 0
        self._failed = 0

    @property
    def min_interval(self) -> float:
        return self._min_interval

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def submit(self, operation: Callable[[], Any]) -> Future:
        """
        Queue a blocking operation.

        Returns:
            Future resolving with the operation's result or exception
        """
        future: Future = Future()
        with self._lock:
            if self._closed:
                raise GateClosed(self._name)
            self._pending.append((operation, future))
            if self._draining:
                return future
            self._draining = True

        worker = threading.Thread(
            target=self._drain,
            name=f"{self._name}-drain",
            daemon=True,
        )
        worker.start()
        return future

    def call(self, operation: Callable[[], Any], timeout: Optional[float] = None) -> Any:
        """Submit and block until the operation's result is available."""
        return self.submit(operation).result(timeout=timeout)

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._pending:
                    self._draining = False
                    return
                if self._last_dispatch is None:
                    wait = 0.0
                else:
                    wait = max(0.0, self._min_interval - (self._clock() - self._last_dispatch))

            # Sleep OUTSIDE lock so submitters are never blocked
            if wait > 0:
                time.sleep(wait)

            with self._lock:
                if not self._pending:
                    self._draining = False
                    return
                operation, future = self._pending.popleft()
                if not future.set_running_or_notify_cancel():
                    continue
                self._last_dispatch = self._clock()
                self._dispatched += 1

            try:
                result = operation()
            except Exception as exc:
                with self._lock:
                    self._failed += 1
                future.set_exception(exc)
            else:
                future.set_result(result)

    def close(self) -> None:
        """Reject new submissions and fail queued ones with GateClosed."""
        with self._lock:
            self._closed = True
            dropped = list(self._pending)
            self._pending.clear()
        for _, future in dropped:
            if future.set_running_or_notify_cancel():
                future.set_exception(GateClosed(self._name))

    def get_stats(self) -> dict:
        """Get gate statistics."""
        with self._lock:
            return {
                "name": self._name,
                "dispatched": self._dispatched,
                "failed": self._failed,
                "pending": len(self._pending),
                "min_interval": self._min_interval,
                "closed": self._closed,
            }
