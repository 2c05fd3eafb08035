"""
animegate configuration handling.

Provides YAML configuration loading and validation.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

import yaml

DEFAULT_UPSTREAM = "https://www.sankavollerei.com"
DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
DEFAULT_LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


@dataclass
class GateConfig:
    """
    animegate configuration.

    Holds independent pacing/caching settings for the origin-facing side
    (``upstream_*``) and the client-facing side (``client_*``).
    Can be loaded from a YAML file or created programmatically.
    """
    # Origin-facing side (proxy -> anime site)
    upstream_base_url: str = DEFAULT_UPSTREAM
    upstream_user_agent: str = DEFAULT_USER_AGENT
    upstream_interval_ms: int = 500
    upstream_ttl_seconds: float = 600  # 10 minutes
    upstream_fetch_timeout: float = 8.0
    upstream_single_flight: bool = False

    # Client-facing side (front-end -> proxy)
    client_base_url: str = "http://localhost:3000/api"
    client_interval_ms: int = 500
    client_ttl_seconds: float = 600
    client_fetch_timeout: float = 8.0

    # Inbound per-client limits
    rate_limit_enabled: bool = True
    rate_limit_api_requests: int = 30
    rate_limit_api_window: int = 900  # 15 minutes
    rate_limit_search_requests: int = 10
    rate_limit_search_window: int = 60

    # Logging
    log_level: str = "INFO"
    log_file: str = ""
    log_format: str = DEFAULT_LOG_FORMAT
    log_max_bytes: int = 10485760  # 10MB
    log_backup_count: int = 3

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    def __post_init__(self) -> None:
        for name in ("upstream_interval_ms", "client_interval_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        for name in (
            "upstream_ttl_seconds",
            "client_ttl_seconds",
            "upstream_fetch_timeout",
            "client_fetch_timeout",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be greater than 0")

    @classmethod
    def load(cls, path: str) -> "GateConfig":
        """
        Load configuration from a YAML file.

        Args:
            path: Path to the YAML configuration file

        Returns:
            GateConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If config file is invalid YAML
        """
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GateConfig":
        """
        Create configuration from a dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            GateConfig instance
        """
        upstream_cfg = data.get("upstream", {})
        client_cfg = data.get("client", {})
        rate_limit_cfg = data.get("rate_limit", {})
        logging_cfg = data.get("logging", {})
        server_cfg = data.get("server", {})

        return cls(
            upstream_base_url=upstream_cfg.get("base_url", DEFAULT_UPSTREAM),
            upstream_user_agent=upstream_cfg.get("user_agent", DEFAULT_USER_AGENT),
            upstream_interval_ms=upstream_cfg.get("interval_ms", 500),
            upstream_ttl_seconds=upstream_cfg.get("ttl_seconds", 600),
            upstream_fetch_timeout=upstream_cfg.get("fetch_timeout", 8.0),
            upstream_single_flight=upstream_cfg.get("single_flight", False),
            client_base_url=client_cfg.get("base_url", "http://localhost:3000/api"),
            client_interval_ms=client_cfg.get("interval_ms", 500),
            client_ttl_seconds=client_cfg.get("ttl_seconds", 600),
            client_fetch_timeout=client_cfg.get("fetch_timeout", 8.0),
            rate_limit_enabled=rate_limit_cfg.get("enabled", True),
            rate_limit_api_requests=rate_limit_cfg.get("api_requests", 30),
            rate_limit_api_window=rate_limit_cfg.get("api_window_seconds", 900),
            rate_limit_search_requests=rate_limit_cfg.get("search_requests", 10),
            rate_limit_search_window=rate_limit_cfg.get("search_window_seconds", 60),
            log_level=logging_cfg.get("level", "INFO"),
            log_file=logging_cfg.get("file", ""),
            log_format=logging_cfg.get("format", DEFAULT_LOG_FORMAT),
            log_max_bytes=logging_cfg.get("max_bytes", 10485760),
            log_backup_count=logging_cfg.get("backup_count", 3),
            host=server_cfg.get("host", "0.0.0.0"),
            port=server_cfg.get("port", 3000),
            cors_origins=server_cfg.get("cors_origins", ["*"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to dictionary.

        Returns:
            Configuration as dictionary
        """
        return {
            "upstream": {
                "base_url": self.upstream_base_url,
                "user_agent": self.upstream_user_agent,
                "interval_ms": self.upstream_interval_ms,
                "ttl_seconds": self.upstream_ttl_seconds,
                "fetch_timeout": self.upstream_fetch_timeout,
                "single_flight": self.upstream_single_flight,
            },
            "client": {
                "base_url": self.client_base_url,
                "interval_ms": self.client_interval_ms,
                "ttl_seconds": self.client_ttl_seconds,
                "fetch_timeout": self.client_fetch_timeout,
            },
            "rate_limit": {
                "enabled": self.rate_limit_enabled,
                "api_requests": self.rate_limit_api_requests,
                "api_window_seconds": self.rate_limit_api_window,
                "search_requests": self.rate_limit_search_requests,
                "search_window_seconds": self.rate_limit_search_window,
            },
            "logging": {
                "level": self.log_level,
                "file": self.log_file,
                "format": self.log_format,
                "max_bytes": self.log_max_bytes,
                "backup_count": self.log_backup_count,
            },
            "server": {
                "host": self.host,
                "port": self.port,
                "cors_origins": list(self.cors_origins),
            },
        }

    def save(self, path: str) -> None:
        """
        Save configuration to a YAML file.

        Args:
            path: Path to save the configuration file
        """
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, allow_unicode=True)
