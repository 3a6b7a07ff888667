"""
Shared CLI state: Typer apps, console, options, and utilities.
"""

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich import print as rprint
from rich.console import Console

from ..exceptions import SpecwatchError
from ..settings import get_project_root

# Main app
app = typer.Typer(
    name="specwatch",
    help="Background supervisor for spec-driven repositories",
    no_args_is_help=False,
    invoke_without_command=True,
    rich_markup_mode="rich",
)

# Supervisor daemon subcommand group
supervisor_app = typer.Typer(
    name="supervisor",
    help="Manage the Supervisor Daemon (drift and policy monitoring)",
    no_args_is_help=False,
    invoke_without_command=True,
)
app.add_typer(supervisor_app, name="supervisor")

# Session lock subcommand group
lock_app = typer.Typer(
    name="lock",
    help="Inspect, clear, or hold the session lock.",
    no_args_is_help=True,
)
app.add_typer(lock_app, name="lock")

# Config subcommand group
config_app = typer.Typer(
    name="config",
    help="Manage supervisor configuration",
    no_args_is_help=False,
    invoke_without_command=True,
)
app.add_typer(config_app, name="config")

# Console for rich output
console = Console()

# Global project root option
RootOption = Annotated[
    Optional[Path],
    typer.Option(
        "--root",
        "-r",
        help="Project root (default: git toplevel of the current directory)",
    ),
]

VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]


def resolve_root(root: Optional[Path]) -> Path:
    """Project root from the option, else from git."""
    return root.resolve() if root else get_project_root()


def report_error(error: SpecwatchError) -> None:
    """Print an error with a prefix telling degraded from fatal."""
    color = "yellow" if error.degraded else "red"
    rprint(f"[{color}]{error.label}:[/{color}] {error}")


@app.callback(invoke_without_command=True)
def main_callback(ctx: typer.Context, verbose: VerboseOption = False):
    """Show the project status report when no command is given."""
    from ..logging_config import setup_cli_logging

    setup_cli_logging(verbose)
    if ctx.invoked_subcommand is None:
        from .query import show_status

        show_status(None)
