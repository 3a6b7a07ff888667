"""
Reporting commands: query, observations, status.
"""

import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich import print as rprint
from rich.table import Table

from ..exceptions import SpecwatchError
from ._shared import RootOption, app, console, report_error, resolve_root


@app.command("query")
def query(
    msg_type: Annotated[
        str, typer.Argument(help="Message type (logged by the daemon)")
    ] = "status",
    payload: Annotated[
        Optional[str], typer.Option("--payload", "-p", help="JSON payload to send")
    ] = None,
    timeout: Annotated[
        float, typer.Option("--timeout", "-t", help="Seconds to wait for the answer")
    ] = 5.0,
    message_id: Annotated[
        Optional[str], typer.Option("--id", help="Use this message id instead of a generated one")
    ] = None,
    root: RootOption = None,
):
    """Send a message to the Supervisor Daemon and print its answer.

    The daemon is started first if it is not running. A timeout is
    reported as degraded and exits 0; other errors exit 1.
    """
    from ..message_channel import MessageChannel
    from ..process_supervisor import ensure_running
    from ..settings import SupervisorPaths

    body = None
    if payload is not None:
        try:
            body = json.loads(payload)
        except json.JSONDecodeError as e:
            rprint(f"[red]Error:[/red] --payload is not valid JSON: {e}")
            raise typer.Exit(1)

    project = resolve_root(root)
    ensure_running(project)

    channel = MessageChannel.for_paths(SupervisorPaths(project))
    try:
        response = channel.request(msg_type, body, timeout=timeout, message_id=message_id)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except SpecwatchError as e:
        report_error(e)
        if not e.degraded:
            raise typer.Exit(1)
        return

    print(json.dumps(response.result, indent=2))


@app.command("observations")
def observations(
    limit: Annotated[
        int, typer.Option("--limit", "-n", help="Show at most this many (newest)")
    ] = 20,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print as JSON lines")
    ] = False,
    all_history: Annotated[
        bool, typer.Option("--all", "-a", help="Read the full log instead of the state snapshot")
    ] = False,
    root: RootOption = None,
):
    """List observations recorded by the Supervisor Daemon."""
    from ..settings import SupervisorPaths
    from ..status_constants import get_severity_color, get_severity_emoji
    from ..supervisor_state import get_supervisor_state, read_observation_log

    paths = SupervisorPaths(resolve_root(root))
    if all_history:
        items = read_observation_log(paths.observation_log)
    else:
        state = get_supervisor_state(paths.state_file)
        items = state.observations if state else []

    if limit > 0:
        items = items[-limit:]

    if as_json:
        for obs in items:
            print(json.dumps(obs.to_dict()))
        return

    if not items:
        rprint("[dim]No observations recorded.[/dim]")
        return

    table = Table(title="Supervisor Observations", show_lines=False)
    table.add_column("Time", style="dim", no_wrap=True)
    table.add_column("Severity", no_wrap=True)
    table.add_column("Type", no_wrap=True)
    table.add_column("Message")
    for obs in items:
        color = get_severity_color(obs.severity)
        table.add_row(
            obs.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            f"[{color}]{get_severity_emoji(obs.severity)} {obs.severity}[/{color}]",
            obs.type,
            obs.message,
        )
    console.print(table)


@app.command("status")
def status(root: RootOption = None):
    """Show a project report: git, feature documents, tasks, observations."""
    show_status(root)


def _mark(path: Path, name: str) -> str:
    if path is not None and (path / name).is_file():
        return f"  [green]✓[/green] {name}"
    return f"  [red]✗[/red] {name} [dim](missing)[/dim]"


def show_status(root: Optional[Path]):
    """Internal function for the project status report."""
    from ..implementations import RealGit
    from ..liveness import is_healthy
    from ..settings import SupervisorPaths
    from ..supervisor_state import get_supervisor_state, read_observation_log
    from ..workspace import count_tasks, find_feature_dir, get_active_feature, read_text_safe

    project = resolve_root(root)
    git = RealGit(project)

    rprint("[bold]=== Project Status ===[/bold]\n")

    if git.is_available():
        revision = git.current_revision() or "unknown"
        rprint(f"Branch: {git.current_branch() or 'unknown'}")
        rprint(f"Commit: {revision[:7]}")
        if git.has_uncommitted_changes():
            rprint("Status: [yellow]Uncommitted changes present[/yellow]")
        else:
            rprint("Status: [green]Working directory clean[/green]")
    else:
        rprint("Branch: [dim]Not a git repository[/dim]")

    feature_dir = find_feature_dir(project, get_active_feature(project, git))
    rprint("")
    rprint(f"Feature Directory: {feature_dir if feature_dir else '[dim](none)[/dim]'}")
    rprint("")
    rprint("Specification Files:")
    rprint(_mark(feature_dir, "spec.md"))
    rprint(_mark(feature_dir, "plan.md"))
    rprint(_mark(feature_dir, "tasks.md"))

    tasks_text = read_text_safe(feature_dir / "tasks.md") if feature_dir else None
    if tasks_text is not None:
        completed, total = count_tasks(tasks_text)
        rprint(f"    Tasks: {completed}/{total} complete ({total - completed} remaining)")

    paths = SupervisorPaths(project)
    rprint("")
    state = get_supervisor_state(paths.state_file)
    logged = len(read_observation_log(paths.observation_log))
    if state is None and not logged:
        rprint("Supervisor Observations: [dim]None[/dim]")
    else:
        current = len(state.observations) if state else 0
        rprint(f"Supervisor Observations: {current} current, {logged} logged")
    health = "[green]healthy[/green]" if is_healthy(paths) else "[dim]not running[/dim]"
    rprint(f"Supervisor: {health}")
