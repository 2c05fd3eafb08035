"""
Cache-then-gate request coordination.

RequestCoordinator is the single entry point for obtaining a value by key:
a cache hit is returned without touching the gate, a miss is fetched through
exactly one gated dispatch and cached on success.

Usage:
    coordinator = RequestCoordinator(TTLCache(ttl=600), RateGate(0.5))
    data = await coordinator.get("home", lambda: upstream.fetch("/anime/home"))
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Optional

from .cache import TTLCache
from .types import FetchTimeout
from .utils.rate_gate import RateGate

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]


def with_timeout(fetcher: Fetcher, timeout: float, key: Optional[str] = None) -> Fetcher:
    """Wrap a fetcher so it fails with FetchTimeout after ``timeout`` seconds.

    The timer starts when the wrapped fetcher is invoked, i.e. on dispatch.
    Exceptions raised by the fetcher itself, TimeoutError included, pass
    through unchanged.
    """
    if timeout <= 0:
        raise ValueError("timeout must be greater than 0")

    async def _bounded() -> Any:
        task = asyncio.ensure_future(fetcher())
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task in done:
            return task.result()

        task.cancel()
        await asyncio.wait({task})
        raise FetchTimeout(timeout, key)

    return _bounded


class RequestCoordinator:
    """Compose a TTLCache and a RateGate around fetch operations."""

    def __init__(
        self,
        cache: TTLCache,
        gate: RateGate,
        fetch_timeout: Optional[float] = None,
        single_flight: bool = False,
    ) -> None:
        """
        Args:
            cache: Store for successful results
            gate: Gate every cache miss is dispatched through
            fetch_timeout: If set, every fetcher is bounded to this many seconds
            single_flight: Share one gated fetch between concurrent misses
                for the same key
        """
        if fetch_timeout is not None and fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be greater than 0")
        self._cache = cache
        self._gate = gate
        self._fetch_timeout = fetch_timeout
        self._single_flight = single_flight
        self._in_flight: dict[str, asyncio.Future] = {}  # key -> shared fetch task

        self._fetches = 0
        self._fetch_failures = 0
        self._shared = 0

    @property
    def cache(self) -> TTLCache:
        return self._cache

    @property
    def gate(self) -> RateGate:
        return self._gate

    async def get(self, key: str, fetcher: Fetcher) -> Any:
        """Return the cached value for ``key`` or fetch it through the gate.

        Failures propagate unchanged and are never cached.
        """
        found, value = self._cache.lookup(key)
        if found:
            logger.debug(f"cache hit: {key}")
            return value

        if not self._single_flight:
            return await self._fetch(key, fetcher)

        task = self._in_flight.get(key)
        if task is None:
            # The fetch belongs to no single caller; cancelling one waiter
            # leaves it running for the others
            task = asyncio.ensure_future(self._fetch(key, fetcher))
            self._in_flight[key] = task
            task.add_done_callback(functools.partial(self._forget, key))
        else:
            self._shared += 1
            logger.debug(f"joining in-flight fetch: {key}")
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Future) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark retrieved so a failure nobody awaited is not logged by asyncio
            task.exception()

    async def _fetch(self, key: str, fetcher: Fetcher) -> Any:
        logger.debug(f"cache miss: {key}")
        operation = fetcher
        if self._fetch_timeout is not None:
            operation = with_timeout(fetcher, self._fetch_timeout, key)

        self._fetches += 1
        try:
            value = await self._gate.submit(operation)
        except Exception as exc:
            self._fetch_failures += 1
            logger.warning(f"fetch failed for {key}: {exc}")
            raise
        self._cache.set(key, value)
        return value

    def invalidate(self, key: str) -> bool:
        """Drop the cached value for ``key``. Returns True if one existed."""
        return self._cache.delete(key)

    def clear(self) -> None:
        self._cache.clear()

    async def close(self) -> None:
        await self._gate.close()

    def get_stats(self) -> dict:
        return {
            "fetches": self._fetches,
            "fetch_failures": self._fetch_failures,
            "shared_fetches": self._shared,
            "in_flight": len(self._in_flight),
            "cache": self._cache.get_stats(),
            "gate": self._gate.get_stats(),
        }
