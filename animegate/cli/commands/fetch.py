"""Fetch command."""

import asyncio
import dataclasses
import time
from typing import Optional, Sequence

import click
from rich.console import Console
from rich.table import Table

from ...types import FetchFailure
from ...upstream import UpstreamClient
from ..app import load_config

console = Console()


@click.command()
@click.argument("paths", nargs=-1, required=True)
@click.option("--repeat", "-r", type=click.IntRange(min=1), default=1, help="Fetch the paths N times")
@click.option("--interval-ms", type=click.IntRange(min=0), default=None, help="Gate spacing override")
@click.option("--ttl", type=click.FloatRange(min=0, min_open=True), default=None, help="Cache TTL override (seconds)")
@click.option("--concurrent", is_flag=True, help="Submit every request at once")
@click.pass_context
def fetch(
    ctx: click.Context,
    paths: Sequence[str],
    repeat: int,
    interval_ms: Optional[int],
    ttl: Optional[float],
    concurrent: bool,
) -> None:
    """Fetch upstream pages through the cache and rate gate.

    Prints one row per request (cache hit or upstream fetch) followed by
    cache and gate statistics.

    Examples:

        animegate fetch /anime/home

        animegate fetch /anime/home /anime/genre --repeat 3

        animegate fetch /anime/ongoing-anime --concurrent --interval-ms 1000
    """
    cfg = load_config(ctx)
    overrides = {}
    if interval_ms is not None:
        overrides["upstream_interval_ms"] = interval_ms
    if ttl is not None:
        overrides["upstream_ttl_seconds"] = ttl
    if overrides:
        cfg = dataclasses.replace(cfg, **overrides)

    failures = asyncio.run(_run(cfg, list(paths) * repeat, concurrent))
    if failures:
        raise SystemExit(1)


async def _run(cfg, targets: list, concurrent: bool) -> int:
    rows = []
    async with UpstreamClient.from_config(cfg) as upstream:
        coordinator = upstream.coordinator
        start = time.monotonic()

        async def _one(index: int, path: str) -> None:
            key = path if path.startswith("/") else "/" + path
            hit = key in coordinator.cache.keys()
            begun = time.monotonic()
            try:
                content = await upstream.page(path)
            except FetchFailure as e:
                rows.append((index, path, "[red]error[/red]", begun - start, str(e)))
                return
            source = "[green]cache[/green]" if hit else "upstream"
            rows.append((index, path, source, begun - start, f"{len(content)} bytes"))

        if concurrent:
            await asyncio.gather(*[_one(i, p) for i, p in enumerate(targets)])
        else:
            for i, p in enumerate(targets):
                await _one(i, p)

        stats = coordinator.get_stats()

    table = Table(title=f"Requests ({cfg.upstream_base_url})")
    table.add_column("#", justify="right")
    table.add_column("Path", style="cyan")
    table.add_column("Source")
    table.add_column("Started", justify="right")
    table.add_column("Result")
    failures = 0
    for index, path, source, offset, result in sorted(rows):
        if "error" in source:
            failures += 1
        table.add_row(str(index + 1), path, source, f"{offset * 1000:.0f} ms", result)
    console.print(table)

    summary = Table(title="Stats")
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value")
    cache_stats = stats["cache"]
    gate_stats = stats["gate"]
    summary.add_row("cache hits", str(cache_stats["hits"]))
    summary.add_row("cache misses", str(cache_stats["misses"]))
    summary.add_row("dispatched", str(gate_stats["dispatched"]))
    summary.add_row("throttled", str(gate_stats["throttled_count"]))
    summary.add_row("wait time", f"{gate_stats['total_wait_time']:.2f}s")
    summary.add_row("fetch failures", str(stats["fetch_failures"]))
    console.print(summary)
    return failures
