"""
animegate: rate-gated, TTL-cached fetching for a single upstream site.

The same three components are used on both sides of the anime proxy:
the server paces and caches its requests to the origin, and the client
paces and caches its requests to the server.

Basic Usage:
    from animegate import RateGate, RequestCoordinator, TTLCache

    coordinator = RequestCoordinator(TTLCache(ttl=600), RateGate(min_interval=0.5))

    async def load_home():
        return await coordinator.get("home", fetch_home)

Server Usage:
    from animegate import GateConfig
    from animegate.web import create_app

    app = create_app(GateConfig.load("config.yaml"))
"""

__version__ = "0.3.0"

from .cache import TTLCache
from .client import ProxyClient
from .config import GateConfig
from .coordinator import RequestCoordinator, with_timeout
from .types import (
    CacheEntry,
    FetchFailure,
    FetchTimeout,
    GateClosed,
    GateError,
    UpstreamError,
)
from .upstream import UpstreamClient
from .utils.rate_gate import RateGate, RateGateConfig, RateGateSync

__all__ = [
    "__version__",
    "TTLCache",
    "CacheEntry",
    "RateGate",
    "RateGateConfig",
    "RateGateSync",
    "RequestCoordinator",
    "with_timeout",
    "UpstreamClient",
    "ProxyClient",
    "GateConfig",
    "GateError",
    "GateClosed",
    "FetchFailure",
    "FetchTimeout",
    "UpstreamError",
]
