"""
Process Supervisor - keeps one supervisor daemon alive per project root.

Callers run ensure_running() before consulting the daemon. It is a no-op
while the daemon is healthy; otherwise it spawns a detached replacement.

Spawning is serialized by spawn.lock, and the daemon claims its PID file
with an atomic create, so racing callers leave at most one daemon running.
"""

import subprocess
import sys
import time
from pathlib import Path
from typing import Callable, Optional

from .exceptions import LivenessError, LockTimeoutError
from .liveness import identity_age, is_healthy, remove_heartbeat
from .logging_config import get_logger
from .pid_utils import is_pid_alive, read_pid, remove_pid_file, stop_process, write_pid_file
from .session_lock import SessionLock
from .settings import DAEMON, SupervisorPaths


log = get_logger("supervisor")

# How long a caller waits for another caller's spawn to finish
SPAWN_LOCK_WAIT = 10.0
SPAWN_LOCK_RETRY = 0.2


def build_daemon_command(paths: SupervisorPaths, verbose: bool = False) -> list:
    """Command line that runs the daemon for a project root."""
    cmd = [sys.executable, "-m", "specwatch.supervisor_daemon", "--root", str(paths.root)]
    if verbose:
        cmd.append("--verbose")
    return cmd


def spawn_daemon(paths: SupervisorPaths, verbose: bool = False) -> int:
    """Start a detached daemon process with output going to supervisor.log.

    Returns:
        The child PID
    """
    paths.base.mkdir(parents=True, exist_ok=True)
    with open(paths.daemon_log, "a") as log_out:
        proc = subprocess.Popen(
            build_daemon_command(paths, verbose),
            cwd=str(paths.root),
            stdin=subprocess.DEVNULL,
            stdout=log_out,
            stderr=subprocess.STDOUT,
            start_new_session=True,
        )
    return proc.pid


def _clear_stale_identity(paths: SupervisorPaths) -> bool:
    """Remove the identity record of a dead or hung daemon.

    A live PID counts as hung only once its marker is older than the
    liveness window; a younger one is a daemon still starting up.

    Returns:
        False when a starting daemon was left in place
    """
    pid = read_pid(paths.pid_file)
    if pid is not None and is_pid_alive(pid):
        age = identity_age(paths)
        if age is not None and age < DAEMON.max_heartbeat_age:
            log.info(f"Supervisor PID {pid} is still starting; not replacing it")
            return False
        # Alive but not heartbeating; a second writer must never start beside it
        log.warning(f"Supervisor PID {pid} is not heartbeating; stopping it")
        stop_process(paths.pid_file)
    elif pid is not None:
        log.info(f"Removing stale supervisor PID file (PID {pid})")
    remove_pid_file(paths.pid_file)
    remove_heartbeat(paths.heartbeat_file)
    return True


def ensure_running(
    root: Path,
    verbose: bool = False,
    spawn: Optional[Callable[[SupervisorPaths, bool], int]] = None,
    grace_period: float = DAEMON.spawn_grace_period,
    strict: bool = False,
) -> bool:
    """Make sure a healthy daemon is running for root.

    Args:
        root: Project root
        verbose: Start a new daemon with debug logging
        spawn: Spawner override (tests)
        grace_period: Seconds to wait after spawning before re-checking
        strict: Raise LivenessError instead of returning False

    Returns:
        True if the daemon is healthy afterwards. False means degraded mode:
        callers continue without observations.
    """
    paths = SupervisorPaths(root)
    if is_healthy(paths):
        return True

    spawn = spawn or spawn_daemon
    try:
        paths.base.mkdir(parents=True, exist_ok=True)
        with SessionLock(paths.spawn_lock, max_wait=SPAWN_LOCK_WAIT, retry_interval=SPAWN_LOCK_RETRY):
            # Another caller may have spawned while we waited
            if is_healthy(paths):
                return True

            if _clear_stale_identity(paths):
                try:
                    pid = spawn(paths, verbose)
                except (OSError, subprocess.SubprocessError) as e:
                    return _degraded(f"Could not start supervisor: {e}", strict)

                # The daemon accepts a marker that already names it
                if read_pid(paths.pid_file) is None:
                    write_pid_file(paths.pid_file, pid)
                log.info(f"Started supervisor daemon (PID {pid})")
            time.sleep(grace_period)
    except LockTimeoutError:
        log.warning("Another caller is starting the supervisor; not waiting further")
    except OSError as e:
        return _degraded(f"Could not prepare supervisor runtime root: {e}", strict)

    if is_healthy(paths):
        return True
    return _degraded("Supervisor did not become healthy; continuing without observations", strict)


def _degraded(message: str, strict: bool) -> bool:
    if strict:
        raise LivenessError(message)
    log.warning(message)
    return False


def stop_supervisor(root: Path, timeout: float = 5.0) -> bool:
    """Stop the daemon for root (SIGTERM, then SIGKILL after timeout).

    Returns:
        True if a running daemon was stopped
    """
    paths = SupervisorPaths(root)
    pid = read_pid(paths.pid_file)
    if pid is None or not is_pid_alive(pid):
        remove_pid_file(paths.pid_file)
        remove_heartbeat(paths.heartbeat_file)
        return False
    log.info(f"Stopping supervisor daemon (PID {pid})")
    stopped = stop_process(paths.pid_file, timeout=timeout)
    remove_heartbeat(paths.heartbeat_file)
    return stopped


def restart_supervisor(
    root: Path,
    verbose: bool = False,
    spawn: Optional[Callable[[SupervisorPaths, bool], int]] = None,
    strict: bool = False,
) -> bool:
    """Stop any running daemon, then start a fresh one."""
    stop_supervisor(root)
    return ensure_running(root, verbose=verbose, spawn=spawn, strict=strict)

