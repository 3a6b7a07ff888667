"""
Liveness probing for the supervisor daemon.

Healthy means all three hold:
- the identity marker names a PID,
- that PID is a live process,
- the heartbeat marker is at most `max_age` seconds old.

The probes (is_healthy and the age helpers) are pure reads.
"""

import os
import tempfile
import time
from pathlib import Path
from typing import Optional

from .pid_utils import get_process_pid, is_pid_alive, read_pid
from .settings import DAEMON, SupervisorPaths


def write_heartbeat(heartbeat_file: Path, now: Optional[float] = None) -> None:
    """Record the heartbeat as integer epoch seconds.

    Written to a sibling temp file and renamed into place, so a concurrent
    reader sees the old beat or the new one, never an empty file.
    """
    heartbeat_file = Path(heartbeat_file)
    heartbeat_file.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=heartbeat_file.parent, prefix=f".{heartbeat_file.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w") as f:
            f.write(str(int(now if now is not None else time.time())))
        os.replace(tmp_name, heartbeat_file)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


def remove_heartbeat(heartbeat_file: Path) -> None:
    """Remove the heartbeat marker if it exists."""
    try:
        Path(heartbeat_file).unlink()
    except FileNotFoundError:
        pass


def read_heartbeat(heartbeat_file: Path) -> Optional[float]:
    """Read the heartbeat epoch, None if absent or unreadable."""
    try:
        return float(Path(heartbeat_file).read_text().strip())
    except (OSError, ValueError):
        return None


def heartbeat_age(heartbeat_file: Path, now: Optional[float] = None) -> Optional[float]:
    """Seconds since the last heartbeat, None if there is none."""
    beat = read_heartbeat(heartbeat_file)
    if beat is None:
        return None
    return (now if now is not None else time.time()) - beat


def is_healthy(
    paths: SupervisorPaths,
    max_age: float = DAEMON.max_heartbeat_age,
    now: Optional[float] = None,
) -> bool:
    """Check whether the recorded daemon is alive and recently active."""
    pid = read_pid(paths.pid_file)
    if pid is None:
        return False
    if not is_pid_alive(pid):
        return False
    age = heartbeat_age(paths.heartbeat_file, now)
    if age is None:
        return False
    return age <= max_age


def get_supervisor_pid(paths: SupervisorPaths) -> Optional[int]:
    """Get the daemon PID if that process is alive."""
    return get_process_pid(paths.pid_file)


def identity_age(paths: SupervisorPaths, now: Optional[float] = None) -> Optional[float]:
    """Seconds since the identity marker was written, None if absent."""
    try:
        written = paths.pid_file.stat().st_mtime
    except OSError:
        return None
    return (now if now is not None else time.time()) - written
