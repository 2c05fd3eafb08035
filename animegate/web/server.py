"""
FastAPI server for the animegate proxy.

Provides:
- Raw page endpoints served through the origin-facing RequestCoordinator
- Cache statistics and cache clearing
- Per-client inbound rate limiting (stricter for search)
- CORS middleware for the browser front-end
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import GateConfig
from ..types import FetchFailure, FetchTimeout, UpstreamError
from ..upstream import UpstreamClient, anime_paths, search_path, stream_path
from ..utils.rate_limit import ClientRateLimiter, RateLimitConfig

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _page_payload(path: str, content: str) -> dict:
    return {
        "path": path,
        "content": content,
        "length": len(content),
        "timestamp": _now(),
    }


def _error_response(exc: Exception, message: str) -> JSONResponse:
    if isinstance(exc, ValueError):
        return JSONResponse({"error": str(exc)}, status_code=400)
    if isinstance(exc, FetchTimeout):
        return JSONResponse({"error": f"{message}: upstream timed out"}, status_code=504)
    if isinstance(exc, UpstreamError) and exc.status_code == 404:
        return JSONResponse({"error": f"{message}: not found"}, status_code=404)
    return JSONResponse({"error": message}, status_code=502)


def create_app(
    config: Optional[GateConfig] = None,
    upstream: Optional[UpstreamClient] = None,
) -> FastAPI:
    """Create the proxy application.

    Args:
        config: Settings (defaults to GateConfig())
        upstream: Pre-built upstream client; built from ``config`` when omitted

    Returns:
        FastAPI application instance
    """
    config = config or GateConfig()
    upstream = upstream or UpstreamClient.from_config(config)

    api_limiter = ClientRateLimiter.from_config(RateLimitConfig(
        requests=config.rate_limit_api_requests,
        window_seconds=config.rate_limit_api_window,
        enabled=config.rate_limit_enabled,
    ))
    search_limiter = ClientRateLimiter.from_config(RateLimitConfig(
        requests=config.rate_limit_search_requests,
        window_seconds=config.rate_limit_search_window,
        enabled=config.rate_limit_enabled,
    ))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"animegate proxying {upstream.base_url}")
        yield
        logger.info("Shutting down animegate...")
        await upstream.aclose()

    app = FastAPI(
        title="animegate",
        description="Rate-gated, cached proxy for a single anime site",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.upstream = upstream
    app.state.api_limiter = api_limiter
    app.state.search_limiter = search_limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def limit_clients(request: Request, call_next: Any):
        path = request.url.path
        if path.startswith("/api/") and path != "/api/health":
            client = request.client.host if request.client else "unknown"
            if not api_limiter.try_acquire(client):
                return JSONResponse(
                    {"error": "Too many requests from this IP, please try again later"},
                    status_code=429,
                    headers={"Retry-After": str(int(api_limiter.retry_after(client)) + 1)},
                )
            if path.startswith("/api/search") and not search_limiter.try_acquire(client):
                return JSONResponse(
                    {"error": "Too many searches, please try again later"},
                    status_code=429,
                    headers={"Retry-After": str(int(search_limiter.retry_after(client)) + 1)},
                )
        return await call_next(request)

    coordinator = upstream.coordinator

    @app.get("/api/health")
    async def get_health() -> JSONResponse:
        return JSONResponse({"status": "ok", "version": __version__, "timestamp": _now()})

    @app.get("/api/cache-stats")
    async def get_cache_stats() -> JSONResponse:
        keys = coordinator.cache.keys()
        return JSONResponse({
            "cached_items": len(keys),
            "keys": keys,
            "stats": coordinator.get_stats(),
        })

    @app.delete("/api/cache")
    async def clear_cache() -> JSONResponse:
        coordinator.clear()
        return JSONResponse({"status": "cleared"})

    @app.get("/api/page/{path:path}")
    async def get_page(path: str, request: Request) -> JSONResponse:
        target = "/" + path
        try:
            content = await upstream.page(target, **dict(request.query_params))
        except Exception as exc:
            logger.error(f"Error in /api/page{target}: {exc}")
            return _error_response(exc, "Failed to fetch page")
        return JSONResponse(_page_payload(target, content))

    @app.get("/api/search/{query}")
    async def search(query: str) -> JSONResponse:
        try:
            target = search_path(query)
            content = await upstream.page(target)
        except Exception as exc:
            logger.error(f"Error in /api/search: {exc}")
            return _error_response(exc, "Search failed")
        payload = _page_payload(target, content)
        payload["query"] = query
        return JSONResponse(payload)

    @app.get("/api/anime/{slug}")
    async def get_anime(slug: str) -> JSONResponse:
        try:
            content = await upstream.first_page(anime_paths(slug))
        except Exception as exc:
            logger.error(f"Error in /api/anime/{slug}: {exc}")
            if isinstance(exc, FetchFailure) and not isinstance(exc, FetchTimeout):
                return JSONResponse({"error": "Anime not found"}, status_code=404)
            return _error_response(exc, "Failed to fetch anime")
        return JSONResponse(_page_payload(f"/anime/{slug}", content))

    @app.get("/api/stream/{server_id}")
    async def get_stream(server_id: str) -> JSONResponse:
        try:
            target = stream_path(server_id)
            content = await upstream.page(target)
        except Exception as exc:
            logger.error(f"Error in /api/stream/{server_id}: {exc}")
            return _error_response(exc, "Failed to fetch stream")
        return JSONResponse(_page_payload(target, content))

    return app
