"""
Inbound rate limiting for the animegate web surface.

Per-client token buckets, so one noisy browser cannot exhaust the
upstream budget for everybody else.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict


def _validate_rate_limit_params(requests: int, window_seconds: float) -> None:
    """Validate rate limiter numeric parameters."""
    if requests <= 0:
        raise ValueError("requests must be greater than 0")
    if window_seconds <= 0:
        raise ValueError("window_seconds must be greater than 0")


@dataclass
class RateLimitConfig:
    """
    Inbound rate limit configuration.

    Attributes:
        requests: Requests allowed per window for one client
        window_seconds: Window length
        enabled: Whether rate limiting is active
    """

    requests: int = 30
    window_seconds: float = 900
    enabled: bool = True

    def __post_init__(self) -> None:
        _validate_rate_limit_params(self.requests, self.window_seconds)


class _Bucket:
    __slots__ = ("tokens", "updated")

    def __init__(self, tokens: float, updated: float):
        self.tokens = tokens
        self.updated = updated


class ClientRateLimiter:
    """
    Token bucket limiter keyed by client id (usually the remote address).

    Each client starts with a full bucket of ``requests`` tokens which
    refills continuously at ``requests / window_seconds`` per second.

    Usage:
        limiter = ClientRateLimiter(requests=10, window_seconds=60)
        if not limiter.try_acquire(request.client.host):
            return JSONResponse({"error": "..."}, status_code=429)
    """

    def __init__(
        self,
        requests: int = 30,
        window_seconds: float = 900,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        _validate_rate_limit_params(requests, window_seconds)
        self._capacity = float(requests)
        self._refill_rate = requests / float(window_seconds)
        self._window = float(window_seconds)
        self._enabled = enabled
        self._clock = clock
        self._buckets: Dict[str, _Bucket] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

        self._total_requests = 0
        self._rejected_count = 0

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> "ClientRateLimiter":
        return cls(config.requests, config.window_seconds, config.enabled)

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    def try_acquire(self, client: str) -> bool:
        """
        Consume one token for ``client`` if available.

        Returns:
            True if the request can proceed, False if rate limited
        """
        if not self._enabled:
            return True

        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self._window:
                self._sweep(now)
            bucket = self._buckets.get(client)
            if bucket is None:
                bucket = self._buckets[client] = _Bucket(self._capacity, now)
            else:
                elapsed = now - bucket.updated
                bucket.tokens = min(self._capacity, bucket.tokens + elapsed * self._refill_rate)
                bucket.updated = now

            self._total_requests += 1
            if bucket.tokens >= 1.0:
                bucket.tokens -= 1.0
                return True

            self._rejected_count += 1
            return False

    def _sweep(self, now: float) -> None:
        """Drop buckets idle for a full window. Caller holds the lock."""
        # An idle window refills any bucket to capacity, same as a new one
        idle = [
            client
            for client, bucket in self._buckets.items()
            if now - bucket.updated >= self._window
        ]
        for client in idle:
            del self._buckets[client]
        self._last_sweep = now

    def retry_after(self, client: str) -> float:
        """Seconds until ``client`` has a token again (0 if it has one now)."""
        with self._lock:
            bucket = self._buckets.get(client)
            if bucket is None:
                return 0.0
            elapsed = self._clock() - bucket.updated
            tokens = min(self._capacity, bucket.tokens + elapsed * self._refill_rate)
            if tokens >= 1.0:
                return 0.0
            return (1.0 - tokens) / self._refill_rate

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "total_requests": self._total_requests,
                "rejected_count": self._rejected_count,
                "clients": len(self._buckets),
                "enabled": self._enabled,
            }

    def reset(self) -> None:
        """Forget all clients and counters."""
        with self._lock:
            self._buckets.clear()
            self._total_requests = 0
            self._rejected_count = 0

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
