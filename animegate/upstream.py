"""
Origin-facing page fetcher.

UpstreamClient fetches raw pages from the anime site through its own
RequestCoordinator, so repeated page loads are served from cache and
cache misses are paced by the gate. Parsing is left to callers.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable
from urllib.parse import quote

import httpx

from .cache import TTLCache
from .config import GateConfig
from .coordinator import RequestCoordinator
from .types import FetchFailure, UpstreamError
from .utils.rate_gate import RateGate, RateGateConfig

logger = logging.getLogger(__name__)

SLUG_RE = re.compile(r"^[a-z0-9-]+$")
SERVER_ID_RE = re.compile(r"^[A-Z0-9-]+$")
MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 50


def validate_slug(slug: str) -> str:
    if not SLUG_RE.match(slug):
        raise ValueError(f"Invalid slug: {slug!r}")
    return slug


def validate_server_id(server_id: str) -> str:
    if not SERVER_ID_RE.match(server_id):
        raise ValueError(f"Invalid server ID: {server_id!r}")
    return server_id


def sanitize_query(query: str) -> str:
    """Check minimum length, truncate and percent-encode a search query."""
    if len(query) < MIN_QUERY_LENGTH:
        raise ValueError(f"Query must be at least {MIN_QUERY_LENGTH} characters")
    return quote(query[:MAX_QUERY_LENGTH], safe="")


def cache_key(path: str, params: dict[str, Any] | None = None) -> str:
    """Stable cache key: path plus sorted query parameters."""
    if not params:
        return path
    query = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return f"{path}?{query}"


def build_coordinator(
    ttl: float,
    interval_ms: int,
    fetch_timeout: float | None,
    name: str,
    single_flight: bool = False,
) -> RequestCoordinator:
    return RequestCoordinator(
        TTLCache(ttl=ttl),
        RateGate.from_config(RateGateConfig(interval_ms=interval_ms, name=name)),
        fetch_timeout=fetch_timeout,
        single_flight=single_flight,
    )


class UpstreamClient:
    """Rate-gated, cached page fetcher for a single origin."""

    def __init__(
        self,
        coordinator: RequestCoordinator,
        base_url: str,
        user_agent: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": user_agent},
            follow_redirects=True,
        )

    @classmethod
    def from_config(
        cls,
        config: GateConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> "UpstreamClient":
        coordinator = build_coordinator(
            ttl=config.upstream_ttl_seconds,
            interval_ms=config.upstream_interval_ms,
            fetch_timeout=config.upstream_fetch_timeout,
            name="upstream",
            single_flight=config.upstream_single_flight,
        )
        return cls(coordinator, config.upstream_base_url, config.upstream_user_agent, http_client)

    @property
    def coordinator(self) -> RequestCoordinator:
        return self._coordinator

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _download(self, path: str, params: dict[str, Any] | None) -> str:
        url = f"{self._base_url}{path}"
        try:
            response = await self._http.get(url, params=params)
        except httpx.HTTPError as exc:
            logger.error(f"Error fetching {url}: {exc}")
            raise UpstreamError(url, f"Request to {url} failed: {exc}") from exc
        if response.is_error:
            logger.error(f"Error fetching {url}: HTTP {response.status_code}")
            raise UpstreamError(
                url,
                f"HTTP {response.status_code} from {url}",
                status_code=response.status_code,
            )
        return response.text

    async def page(self, path: str, **params: Any) -> str:
        """Fetch the raw text of ``path`` (cached, rate-gated)."""
        if not path.startswith("/"):
            path = "/" + path
        params = {k: v for k, v in params.items() if v is not None}
        return await self._coordinator.get(
            cache_key(path, params),
            lambda: self._download(path, params or None),
        )

    async def first_page(self, paths: Iterable[str]) -> str:
        """Return the first candidate path that fetches successfully.

        Raises the last failure if every candidate fails.
        """
        last_error: Exception | None = None
        for path in paths:
            try:
                return await self.page(path)
            except FetchFailure as exc:
                last_error = exc
        if last_error is None:
            raise ValueError("No candidate paths given")
        raise last_error

    async def aclose(self) -> None:
        await self._coordinator.close()
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def anime_paths(slug: str) -> list[str]:
    """Candidate paths for an anime detail page, tried in order."""
    validate_slug(slug)
    return [f"/anime/anime/{slug}", f"/anime/batch/{slug}"]


def search_path(query: str) -> str:
    return f"/anime/search/{sanitize_query(query)}"


def stream_path(server_id: str) -> str:
    return f"/anime/server/{validate_server_id(server_id)}"


def genre_path(slug: str) -> str:
    return f"/anime/genre/{validate_slug(slug)}"
