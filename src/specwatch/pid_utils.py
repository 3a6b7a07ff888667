"""
PID file helpers.

The supervisor's identity marker is a plain PID file. These helpers probe
process liveness without side effects and claim the marker atomically.
"""

import os
import signal
import time
from pathlib import Path
from typing import Optional, Tuple


def is_pid_alive(pid: int) -> bool:
    """Probe a process with signal 0 (no signal is delivered)."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user
        return True
    except OSError:
        return False
    return True


def read_pid(pid_file: Path) -> Optional[int]:
    """Read the PID recorded in a file, None if absent or unreadable."""
    try:
        return int(Path(pid_file).read_text().strip())
    except (OSError, ValueError):
        return None



def get_process_pid(pid_file: Path) -> Optional[int]:
    """Get the recorded PID if that process is alive, None otherwise."""
    pid = read_pid(pid_file)
    if pid is not None and is_pid_alive(pid):
        return pid
    return None


def write_pid_file(pid_file: Path, pid: Optional[int] = None) -> None:
    """Write a PID (default: current process) to pid_file."""
    pid_file = Path(pid_file)
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    pid_file.write_text(str(pid if pid is not None else os.getpid()))


def remove_pid_file(pid_file: Path) -> None:
    """Remove a PID file if it exists."""
    try:
        Path(pid_file).unlink()
    except FileNotFoundError:
        pass


def acquire_daemon_lock(pid_file: Path) -> Tuple[bool, Optional[int]]:
    """Atomically claim pid_file for the current process.

    The marker is created with O_CREAT | O_EXCL, so of several racing
    processes exactly one wins. A marker left by a dead process is removed
    and the claim retried. A marker that already names this process (the
    spawning caller recorded it) counts as acquired.

    Returns:
        Tuple of (acquired, existing_pid). existing_pid is set only when
        another live process holds the marker.
    """
    pid_file = Path(pid_file)
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    my_pid = os.getpid()

    for _ in range(3):
        try:
            fd = os.open(pid_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            existing = read_pid(pid_file)
            if existing == my_pid:
                return True, None
            if existing is not None and is_pid_alive(existing):
                return False, existing
            if existing is None:
                # Possibly mid-write by a racing claimant
                time.sleep(0.05)
                existing = read_pid(pid_file)
                if existing is not None and existing != my_pid and is_pid_alive(existing):
                    return False, existing
                if existing == my_pid:
                    return True, None
            remove_pid_file(pid_file)
            continue
        try:
            os.write(fd, str(my_pid).encode())
        finally:
            os.close(fd)
        return True, None

    return False, read_pid(pid_file)


def stop_process(pid_file: Path, timeout: float = 5.0) -> bool:
    """Stop the process recorded in pid_file.

    Sends SIGTERM, waits up to timeout for exit, then SIGKILL.
    Cleans up the PID file in every case.

    Returns:
        True if a live process was signalled, False otherwise.
    """
    pid = read_pid(pid_file)
    if pid is None:
        remove_pid_file(pid_file)
        return False

    try:
        os.kill(pid, signal.SIGTERM)
    except OSError:
        remove_pid_file(pid_file)
        return False

    start = time.time()
    while time.time() - start < timeout:
        try:
            os.kill(pid, 0)
        except OSError:
            remove_pid_file(pid_file)
            return True
        time.sleep(0.1)

    try:
        os.kill(pid, signal.SIGKILL)
    except OSError:
        pass
    remove_pid_file(pid_file)
    return True
