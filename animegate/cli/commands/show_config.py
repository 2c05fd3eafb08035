"""Config command."""

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax

from ..app import load_config

console = Console()


@click.command()
@click.option("--raw", is_flag=True, help="Plain YAML without highlighting")
@click.pass_context
def config(ctx: click.Context, raw: bool) -> None:
    """Print the resolved configuration as YAML.

    Examples:

        animegate config

        animegate -c prod.yaml config --raw
    """
    try:
        cfg = load_config(ctx)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)

    text = yaml.dump(cfg.to_dict(), default_flow_style=False, allow_unicode=True)
    if raw:
        click.echo(text, nl=False)
    else:
        console.print(Syntax(text, "yaml"))
