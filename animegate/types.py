"""
animegate type definitions.

Error types shared by the gate, the cache coordinator and the HTTP fetchers.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Optional


class GateError(Exception):
    """Base class for animegate errors."""


class GateClosed(GateError):
    """Raised when submitting to (or waiting in) a gate that has been closed."""

    def __init__(self, name: str = "gate"):
        super().__init__(f"{name} is closed")
        self.name = name


class FetchFailure(GateError):
    """A fetch operation failed (network error, bad status, parse error)."""


class FetchTimeout(FetchFailure, TimeoutError):
    """A fetch did not finish within its time budget."""

    def __init__(self, timeout: float, key: Optional[str] = None):
        target = f" for {key!r}" if key else ""
        super().__init__(f"fetch{target} timed out after {timeout:.1f}s")
        self.timeout = timeout
        self.key = key


class UpstreamError(FetchFailure):
    """HTTP fetch failed: transport error or non-success status."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


@dataclass
class CacheEntry:
    """A cached value stamped with its insertion time."""
    key: str
    value: Any
    inserted_at: float = field(default_factory=time.monotonic)
