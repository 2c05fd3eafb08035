"""animegate utilities."""

from .logging import get_logger, setup_logging, setup_logging_from_dict
from .rate_gate import RateGate, RateGateConfig, RateGateSync
from .rate_limit import ClientRateLimiter, RateLimitConfig

__all__ = [
    "get_logger",
    "setup_logging",
    "setup_logging_from_dict",
    "RateGate",
    "RateGateConfig",
    "RateGateSync",
    "ClientRateLimiter",
    "RateLimitConfig",
]
