"""
Supervisor daemon commands: start, stop, restart, status, ensure, watch, run.
"""

import time

import typer
from rich import print as rprint

from ..exceptions import SpecwatchError
from ._shared import RootOption, VerboseOption, report_error, resolve_root, supervisor_app


@supervisor_app.callback(invoke_without_command=True)
def supervisor_default(ctx: typer.Context, root: RootOption = None):
    """Show supervisor daemon status (default when no subcommand given)."""
    if ctx.invoked_subcommand is None:
        _supervisor_status(resolve_root(root))


@supervisor_app.command("start")
def supervisor_start(root: RootOption = None, verbose: VerboseOption = False):
    """Start the Supervisor Daemon in the background.

    The daemon keeps watching the project between commands:
    - Uncommitted and staged changes
    - Files changed without a matching task
    - Policy document changes and test mandates
    """
    from ..liveness import get_supervisor_pid, is_healthy
    from ..process_supervisor import ensure_running
    from ..settings import SupervisorPaths

    project = resolve_root(root)
    paths = SupervisorPaths(project)
    if is_healthy(paths):
        rprint(f"[yellow]Supervisor Daemon already running[/yellow] (PID {get_supervisor_pid(paths)})")
        return

    rprint(f"[dim]Starting Supervisor Daemon for {project}...[/dim]")
    try:
        ensure_running(project, verbose=verbose, strict=True)
    except SpecwatchError as e:
        report_error(e)
        raise typer.Exit(1)
    rprint(f"[green]✓[/green] Supervisor Daemon running (PID {get_supervisor_pid(paths)})")


@supervisor_app.command("stop")
def supervisor_stop(root: RootOption = None):
    """Stop the running Supervisor Daemon."""
    from ..liveness import get_supervisor_pid
    from ..process_supervisor import stop_supervisor
    from ..settings import SupervisorPaths

    project = resolve_root(root)
    pid = get_supervisor_pid(SupervisorPaths(project))
    if pid is None:
        rprint("[dim]Supervisor Daemon is not running[/dim]")
        return

    if stop_supervisor(project):
        rprint(f"[green]✓[/green] Supervisor Daemon stopped (was PID {pid})")
    else:
        rprint("[red]Failed to stop Supervisor Daemon[/red]")
        raise typer.Exit(1)


@supervisor_app.command("restart")
def supervisor_restart(root: RootOption = None, verbose: VerboseOption = False):
    """Stop the Supervisor Daemon and start a fresh one."""
    from ..liveness import get_supervisor_pid
    from ..process_supervisor import restart_supervisor
    from ..settings import SupervisorPaths

    project = resolve_root(root)
    try:
        restart_supervisor(project, verbose=verbose, strict=True)
    except SpecwatchError as e:
        report_error(e)
        raise typer.Exit(1)
    rprint(f"[green]✓[/green] Supervisor Daemon restarted (PID {get_supervisor_pid(SupervisorPaths(project))})")


@supervisor_app.command("ensure")
def supervisor_ensure(root: RootOption = None):
    """Start the daemon only if it is not healthy (idempotent).

    A daemon that cannot be started is reported as degraded; the command
    still succeeds so scripts can continue without observations.
    """
    from ..exceptions import LivenessError
    from ..process_supervisor import ensure_running

    project = resolve_root(root)
    if not ensure_running(project):
        report_error(LivenessError("Supervisor unavailable; continuing without observations"))


@supervisor_app.command("status")
def supervisor_status_cmd(root: RootOption = None):
    """Show Supervisor Daemon status."""
    _supervisor_status(resolve_root(root))


def _format_age(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.0f}s ago"
    if seconds < 3600:
        return f"{seconds / 60:.0f}m ago"
    return f"{seconds / 3600:.1f}h ago"


def _supervisor_status(project):
    """Internal function for showing supervisor daemon status."""
    from ..liveness import get_supervisor_pid, heartbeat_age, is_healthy
    from ..message_channel import query_supervisor
    from ..settings import SupervisorPaths
    from ..supervisor_state import get_supervisor_state

    paths = SupervisorPaths(project)
    state = get_supervisor_state(paths.state_file)
    age = heartbeat_age(paths.heartbeat_file)
    pid = get_supervisor_pid(paths)

    if pid is None:
        rprint("[dim]Supervisor Daemon:[/dim] ○ stopped")
    elif is_healthy(paths):
        rprint(f"[green]Supervisor Daemon:[/green] ● running (PID {pid})")
        live = query_supervisor(paths, timeout=2.0)
        if live is None:
            rprint("  Live: [yellow]no answer[/yellow]")
        else:
            rprint(f"  Live: {live.get('status')} ({live.get('observation_count', 0)} observations)")
    else:
        rprint(f"[yellow]Supervisor Daemon:[/yellow] ◐ unresponsive (PID {pid})")

    if age is not None:
        rprint(f"  Last heartbeat: {_format_age(max(0.0, age))}")
    if state:
        rprint(f"  Phase: {state.phase}")
        rprint(f"  Branch: {state.current_branch} @ {state.current_revision[:12]}")
        rprint(f"  Observations: {len(state.observations)}")
        now = time.time()
        if state.last_delta_scan:
            rprint(f"  Last delta scan: {_format_age(now - state.last_delta_scan.timestamp())}")
        if state.last_full_scan:
            rprint(f"  Last full scan: {_format_age(now - state.last_full_scan.timestamp())}")


@supervisor_app.command("watch")
def supervisor_watch(root: RootOption = None):
    """Watch Supervisor Daemon logs in real-time."""
    import subprocess
    from ..settings import SupervisorPaths

    log_file = SupervisorPaths(resolve_root(root)).daemon_log

    if not log_file.exists():
        rprint(f"[red]Log file not found:[/red] {log_file}")
        rprint("[dim]The Supervisor Daemon may not have run yet.[/dim]")
        raise typer.Exit(1)

    rprint(f"[dim]Watching {log_file} (Ctrl-C to stop)[/dim]")
    print("-" * 60)

    try:
        subprocess.run(["tail", "-f", str(log_file)])
    except KeyboardInterrupt:
        print("\nStopped watching.")


@supervisor_app.command("run")
def supervisor_run(root: RootOption = None, verbose: VerboseOption = False):
    """Run the Supervisor Daemon in the foreground (Ctrl-C to stop)."""
    from ..logging_config import setup_daemon_logging
    from ..supervisor_daemon import SupervisorDaemon

    daemon = SupervisorDaemon(resolve_root(root), verbose=verbose)
    setup_daemon_logging(daemon.paths.debug_log, verbose=verbose)
    code = daemon.run()
    if code:
        raise typer.Exit(code)
