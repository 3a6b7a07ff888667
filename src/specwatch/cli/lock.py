"""
Session lock commands: status, clear, run.
"""

import signal
import subprocess
from typing import Annotated, List, Optional

import typer
from rich import print as rprint

from ..exceptions import SpecwatchError
from ._shared import RootOption, lock_app, report_error, resolve_root


@lock_app.command("status")
def lock_status(root: RootOption = None):
    """Show whether the session lock is held, and by whom."""
    from ..session_lock import get_lock_holder, is_lock_stale
    from ..settings import SupervisorPaths

    path = SupervisorPaths(resolve_root(root)).session_lock
    if not path.exists():
        rprint("[dim]Session lock:[/dim] ○ free")
        return

    holder = get_lock_holder(path)
    if is_lock_stale(path):
        rprint(f"[yellow]Session lock:[/yellow] ◐ stale (PID {holder} is gone)")
        rprint("[dim]Run 'specwatch lock clear' to remove it[/dim]")
    else:
        rprint(f"[green]Session lock:[/green] ● held by PID {holder}")


@lock_app.command("clear")
def lock_clear(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Remove even if the holder is alive")
    ] = False,
    root: RootOption = None,
):
    """Remove a session lock left behind by a crashed command."""
    from ..session_lock import clear_lock, get_lock_holder, is_lock_stale
    from ..settings import SupervisorPaths

    path = SupervisorPaths(resolve_root(root)).session_lock
    if not path.exists():
        rprint("[dim]Session lock is not held[/dim]")
        return

    if not force and not is_lock_stale(path):
        rprint(f"[yellow]Session lock is held by live PID {get_lock_holder(path)}[/yellow]")
        rprint("[dim]Use --force to remove it anyway[/dim]")
        raise typer.Exit(1)

    clear_lock(path)
    rprint(f"[green]✓[/green] Cleared session lock: {path}")


def _raise_exit(signum, frame):
    raise SystemExit(128 + signum)


@lock_app.command("run")
def lock_run(
    command: Annotated[
        List[str], typer.Argument(help="Command to run while holding the lock (after --)")
    ],
    max_wait: Annotated[
        Optional[float], typer.Option("--max-wait", "-w", help="Seconds to wait for the lock")
    ] = None,
    root: RootOption = None,
):
    """Run a command while holding the session lock.

    Example: specwatch lock run -- git commit -am "Update tasks"

    The lock is released when the command finishes, fails, or is
    interrupted (Ctrl-C or SIGTERM).
    """
    from ..session_lock import SessionLock
    from ..settings import SupervisorPaths

    lock = SessionLock(SupervisorPaths(resolve_root(root)).session_lock)
    previous = signal.signal(signal.SIGTERM, _raise_exit)
    try:
        lock.acquire(max_wait)
        try:
            result = subprocess.run(command)
        except OSError as e:
            rprint(f"[red]Error:[/red] could not run {command[0]}: {e}")
            raise typer.Exit(127)
    except SpecwatchError as e:
        report_error(e)
        raise typer.Exit(1)
    finally:
        lock.release()
        signal.signal(signal.SIGTERM, previous)

    if result.returncode:
        raise typer.Exit(result.returncode)
