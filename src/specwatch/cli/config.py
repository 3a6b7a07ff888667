"""
Config commands: init, show, path.
"""

from typing import Annotated

import typer
from rich import print as rprint

from ._shared import RootOption, config_app, resolve_root


@config_app.callback(invoke_without_command=True)
def config_default(ctx: typer.Context, root: RootOption = None):
    """Show current configuration (default when no subcommand given)."""
    if ctx.invoked_subcommand is None:
        _config_show(root)


@config_app.command("init")
def config_init(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite existing config file")
    ] = False,
    root: RootOption = None,
):
    """Create a config file with documented defaults.

    Creates <project>/.speckit/supervisor/config.yaml.
    Use --force to overwrite an existing config file.
    """
    from ..config import SupervisorConfig, save_config
    from ..settings import SupervisorPaths

    config_path = SupervisorPaths(resolve_root(root)).config_file

    if config_path.exists() and not force:
        rprint(f"[yellow]Config file already exists:[/yellow] {config_path}")
        rprint("[dim]Use --force to overwrite[/dim]")
        raise typer.Exit(1)

    save_config(config_path, SupervisorConfig())
    rprint(f"[green]✓[/green] Created config file: [bold]{config_path}[/bold]")
    rprint("[dim]Changes take effect the next time the supervisor starts[/dim]")


@config_app.command("show")
def config_show(root: RootOption = None):
    """Show the effective configuration."""
    _config_show(root)


@config_app.command("path")
def config_path(root: RootOption = None):
    """Print the config file location."""
    from ..settings import SupervisorPaths

    print(SupervisorPaths(resolve_root(root)).config_file)


def _config_show(root):
    """Internal function to display the effective config."""
    from ..config import load_supervisor_config
    from ..settings import SupervisorPaths

    config_file = SupervisorPaths(resolve_root(root)).config_file
    config = load_supervisor_config(config_file)

    if config_file.exists():
        rprint(f"[bold]Configuration[/bold] ({config_file}):\n")
    else:
        rprint(f"[bold]Configuration[/bold] [dim](defaults; no file at {config_file})[/dim]\n")

    for key, value in config.to_dict().items():
        rprint(f"  {key}: {value}")
