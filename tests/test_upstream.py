"""Tests for animegate.upstream and animegate.client (httpx MockTransport)."""

import asyncio

import httpx
import pytest

from animegate.client import ProxyClient
from animegate.config import GateConfig
from animegate.types import UpstreamError
from animegate.upstream import (
    UpstreamClient,
    anime_paths,
    build_coordinator,
    cache_key,
    sanitize_query,
    search_path,
    stream_path,
    validate_slug,
)

BASE = "https://anime.example"


def make_transport(routes, seen):
    """MockTransport serving ``routes`` (path -> (status, body)) and logging requests."""
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        status, body = routes.get(request.url.path, (404, "not found"))
        if isinstance(body, Exception):
            raise body
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body)
    return httpx.MockTransport(handler)


def make_upstream(routes, seen, interval_ms=0):
    http = httpx.AsyncClient(transport=make_transport(routes, seen), headers={"User-Agent": "test-agent"})
    coordinator = build_coordinator(ttl=600, interval_ms=interval_ms, fetch_timeout=5.0, name="upstream")
    return UpstreamClient(coordinator, BASE, "test-agent", http_client=http)


class TestHelpers:
    """Tests for path building and validation helpers."""

    def test_cache_key_sorts_params(self):
        assert cache_key("/anime/complete-anime", {"page": 2, "b": "x"}) == "/anime/complete-anime?b=x&page=2"
        assert cache_key("/anime/home") == "/anime/home"

    def test_validate_slug(self):
        assert validate_slug("one-piece-2") == "one-piece-2"
        for bad in ("One-Piece", "../etc", "a b", ""):
            with pytest.raises(ValueError):
                validate_slug(bad)

    def test_stream_path(self):
        assert stream_path("ABC-123") == "/anime/server/ABC-123"
        with pytest.raises(ValueError):
            stream_path("abc")

    def test_sanitize_query(self):
        assert sanitize_query("one piece") == "one%20piece"
        assert sanitize_query("a/b") == "a%2Fb"
        assert len(sanitize_query("x" * 80)) == 50
        with pytest.raises(ValueError):
            sanitize_query("a")

    def test_search_path(self):
        assert search_path("naruto") == "/anime/search/naruto"

    def test_anime_paths(self):
        assert anime_paths("naruto") == ["/anime/anime/naruto", "/anime/batch/naruto"]


class TestUpstreamClient:
    """Tests for UpstreamClient."""

    @pytest.mark.asyncio
    async def test_page_is_cached(self):
        seen = []
        upstream = make_upstream({"/anime/home": (200, "<html>home</html>")}, seen)
        async with upstream:
            assert await upstream.page("/anime/home") == "<html>home</html>"
            assert await upstream.page("anime/home") == "<html>home</html>"
        assert len(seen) == 1
        assert seen[0].headers["User-Agent"] == "test-agent"

    @pytest.mark.asyncio
    async def test_query_params_form_part_of_key(self):
        seen = []
        upstream = make_upstream({"/anime/ongoing-anime": (200, "list")}, seen)
        async with upstream:
            await upstream.page("/anime/ongoing-anime", page=1)
            await upstream.page("/anime/ongoing-anime", page=2)
            await upstream.page("/anime/ongoing-anime", page=1)
        assert len(seen) == 2
        assert seen[1].url.params["page"] == "2"

    @pytest.mark.asyncio
    async def test_error_status_raises_upstream_error(self):
        seen = []
        upstream = make_upstream({"/anime/home": (503, "busy")}, seen)
        async with upstream:
            with pytest.raises(UpstreamError) as exc_info:
                await upstream.page("/anime/home")
            assert exc_info.value.status_code == 503
            assert exc_info.value.url == f"{BASE}/anime/home"
            # not cached: second call hits the origin again
            with pytest.raises(UpstreamError):
                await upstream.page("/anime/home")
        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_transport_error_raises_upstream_error(self):
        seen = []
        routes = {"/anime/home": (200, httpx.ConnectError("refused"))}
        upstream = make_upstream(routes, seen)
        async with upstream:
            with pytest.raises(UpstreamError) as exc_info:
                await upstream.page("/anime/home")
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_first_page_falls_back(self):
        seen = []
        routes = {"/anime/batch/naruto": (200, "batch page")}
        upstream = make_upstream(routes, seen)
        async with upstream:
            assert await upstream.first_page(anime_paths("naruto")) == "batch page"
        assert [r.url.path for r in seen] == ["/anime/anime/naruto", "/anime/batch/naruto"]

    @pytest.mark.asyncio
    async def test_first_page_falls_back_after_timeout(self):
        """A candidate that times out is skipped like any other failure."""
        seen = []

        async def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            if request.url.path == "/anime/anime/naruto":
                await asyncio.sleep(1.0)
            return httpx.Response(200, text="batch page")

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        coordinator = build_coordinator(ttl=600, interval_ms=0, fetch_timeout=0.05, name="upstream")
        upstream = UpstreamClient(coordinator, BASE, "test-agent", http_client=http)
        async with upstream:
            assert await upstream.first_page(anime_paths("naruto")) == "batch page"
        assert seen == ["/anime/anime/naruto", "/anime/batch/naruto"]

    @pytest.mark.asyncio
    async def test_first_page_raises_last_error(self):
        seen = []
        upstream = make_upstream({}, seen)
        async with upstream:
            with pytest.raises(UpstreamError) as exc_info:
                await upstream.first_page(anime_paths("missing"))
        assert exc_info.value.url.endswith("/anime/batch/missing")

    @pytest.mark.asyncio
    async def test_from_config(self):
        cfg = GateConfig(upstream_interval_ms=250, upstream_ttl_seconds=30, upstream_single_flight=True)
        upstream = UpstreamClient.from_config(cfg, http_client=httpx.AsyncClient())
        async with upstream:
            stats = upstream.coordinator.get_stats()
            assert stats["gate"]["min_interval"] == 0.25
            assert stats["cache"]["ttl"] == 30.0
            assert upstream.base_url == cfg.upstream_base_url


class TestProxyClient:
    """Tests for the client-side ProxyClient."""

    @pytest.mark.asyncio
    async def test_get_json_is_cached(self):
        seen = []
        http = httpx.AsyncClient(transport=make_transport({"/api/home": (200, {"featured": []})}, seen))
        client = ProxyClient(build_coordinator(600, 0, 5.0, "client"), "http://proxy/api", http_client=http)
        async with client:
            assert await client.get_json("/home") == {"featured": []}
            assert await client.get_json("home") == {"featured": []}
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_http_error(self):
        seen = []
        http = httpx.AsyncClient(transport=make_transport({"/api/genres": (500, {"error": "x"})}, seen))
        client = ProxyClient(build_coordinator(600, 0, 5.0, "client"), "http://proxy/api", http_client=http)
        async with client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.get_json("/genres")
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_health_bypasses_cache(self):
        seen = []
        http = httpx.AsyncClient(transport=make_transport({"/api/health": (200, {"status": "ok"})}, seen))
        client = ProxyClient(build_coordinator(600, 0, 5.0, "client"), "http://proxy/api", http_client=http)
        async with client:
            await client.health()
            await client.health()
        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_sides_are_independent(self):
        """Client and upstream coordinators share no state."""
        cfg = GateConfig(client_interval_ms=100, upstream_interval_ms=700, client_ttl_seconds=60)
        client = ProxyClient.from_config(cfg, http_client=httpx.AsyncClient())
        upstream = UpstreamClient.from_config(cfg, http_client=httpx.AsyncClient())
        async with client, upstream:
            assert client.coordinator is not upstream.coordinator
            assert client.coordinator.gate.min_interval == 0.1
            assert upstream.coordinator.gate.min_interval == 0.7
            assert client.coordinator.cache.ttl == 60.0
