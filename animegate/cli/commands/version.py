"""Version command."""

import click
from rich.console import Console

from ... import __version__

console = Console()


@click.command()
def version() -> None:
    """Show animegate version."""
    console.print(f"[bold]animegate[/bold] v{__version__}")
