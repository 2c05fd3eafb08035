"""animegate CLI application."""

import os
from pathlib import Path

import click
from rich.console import Console

from .. import __version__
from ..config import GateConfig

console = Console()


def find_config() -> str | None:
    """
    Find config file using standard priority order:

    1. ANIMEGATE_CONFIG environment variable
    2. .animegate.yaml in current directory (project config)
    3. ~/.config/animegate/config.yaml (user config)

    Returns None if no config found.
    """
    env_config = os.environ.get("ANIMEGATE_CONFIG")
    if env_config:
        path = Path(env_config)
        if path.exists():
            return str(path)

    project_config = Path.cwd() / ".animegate.yaml"
    if project_config.exists():
        return str(project_config)

    user_config = Path.home() / ".config" / "animegate" / "config.yaml"
    if user_config.exists():
        return str(user_config)

    return None


def load_config(ctx: click.Context) -> GateConfig:
    """Resolved config for a subcommand (defaults when no file is in use)."""
    path = ctx.obj.get("config")
    return GateConfig.load(path) if path else GateConfig()


@click.group()
@click.version_option(version=__version__, prog_name="animegate")
@click.option("--config", "-c", type=click.Path(exists=True), help="Config file path")
@click.option("--no-config", is_flag=True, help="Disable config auto-loading")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx: click.Context, config: str, no_config: bool, verbose: bool) -> None:
    """animegate: rate-gated, cached fetching for a single anime site.

    Config file locations (in priority order):

        1. -c/--config PATH (explicit)

        2. ANIMEGATE_CONFIG env var

        3. .animegate.yaml (project config)

        4. ~/.config/animegate/config.yaml (user config)

    Examples:

        animegate fetch /anime/home

        animegate fetch /anime/home /anime/schedule --repeat 2

        animegate config
    """
    ctx.ensure_object(dict)

    if no_config:
        config = None
    elif config is None:
        config = find_config()
        if config and verbose:
            console.print(f"[dim]Using config: {config}[/dim]")

    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose


# Import and register commands
from .commands import fetch, show_config, version

cli.add_command(fetch.fetch)
cli.add_command(show_config.config)
cli.add_command(version.version)
