"""
Client-facing API client for the animegate proxy.

Mirrors what the browser front-end does: every JSON request goes through a
client-side RequestCoordinator with its own TTL and pacing, independent of
the proxy's origin-facing one.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import GateConfig
from .coordinator import RequestCoordinator
from .types import UpstreamError
from .upstream import build_coordinator

logger = logging.getLogger(__name__)


class ProxyClient:
    """JSON client for the proxy's ``/api`` endpoints."""

    def __init__(
        self,
        coordinator: RequestCoordinator,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient()

    @classmethod
    def from_config(
        cls,
        config: GateConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> "ProxyClient":
        coordinator = build_coordinator(
            ttl=config.client_ttl_seconds,
            interval_ms=config.client_interval_ms,
            fetch_timeout=config.client_fetch_timeout,
            name="client",
        )
        return cls(coordinator, config.client_base_url, http_client)

    @property
    def coordinator(self) -> RequestCoordinator:
        return self._coordinator

    async def _request(self, endpoint: str) -> Any:
        url = f"{self._base_url}{endpoint}"
        try:
            response = await self._http.get(url)
        except httpx.HTTPError as exc:
            raise UpstreamError(url, f"Request to {url} failed: {exc}") from exc
        if response.is_error:
            raise UpstreamError(
                url,
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response.json()

    async def get_json(self, endpoint: str) -> Any:
        """GET ``endpoint`` (e.g. ``/home``) and return decoded JSON."""
        if not endpoint.startswith("/"):
            endpoint = "/" + endpoint
        return await self._coordinator.get(endpoint, lambda: self._request(endpoint))

    async def health(self) -> Any:
        """Uncached health check (bypasses the cache, still gated)."""
        return await self._coordinator.gate.submit(lambda: self._request("/health"))

    async def aclose(self) -> None:
        await self._coordinator.close()
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "ProxyClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
