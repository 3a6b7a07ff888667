"""
Path and default settings for Specwatch.

Every runtime file lives under a fixed root inside the project:

    <project>/.speckit/
        session.lock              Session lock marker (foreground callers)
        supervisor/
            supervisor.pid        Identity marker
            heartbeat             Heartbeat marker (epoch seconds)
            state.json            SupervisorState document
            config.yaml           Daemon configuration
            inbox/                Pending messages (caller -> daemon)
            outbox/               Responses (daemon -> caller)
            observations/         Append-only observation log
            supervisor.log        Daemon stdout/stderr
            debug.log             Verbose-mode debug log
            spawn.lock            Serializes daemon spawning

SPECWATCH_STATE_DIR overrides the supervisor directory (used by tests).
"""

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


SPECKIT_DIR_NAME = ".speckit"
SUPERVISOR_DIR_NAME = "supervisor"
SPECS_DIR_NAME = "specs"


@dataclass(frozen=True)
class DaemonSettings:
    """Default daemon timings and limits."""

    heartbeat_interval: int = 30
    delta_scan_interval: int = 30
    full_scan_interval: int = 300
    max_observations: int = 100
    # A heartbeat older than this marks the daemon unhealthy
    max_heartbeat_age: int = 60
    # Wait after spawning before re-checking health
    spawn_grace_period: float = 1.0
    # Message round trip
    message_timeout: float = 5.0
    message_poll_interval: float = 0.5
    # Session lock
    lock_max_wait: float = 30.0
    lock_retry_interval: float = 1.0
    # Processed message ids kept in state
    max_processed_ids: int = 500


DAEMON = DaemonSettings()


def get_project_root(start: Optional[Path] = None) -> Path:
    """Find the project root.

    Uses `git rev-parse --show-toplevel`, falling back to the start
    directory when git is unavailable or this is not a repository.
    """
    start = Path(start) if start else Path.cwd()
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=start,
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            return Path(result.stdout.strip())
    except (subprocess.SubprocessError, OSError):
        pass
    return start.resolve()


def get_speckit_dir(root: Path) -> Path:
    """Get the .speckit directory for a project."""
    return Path(root) / SPECKIT_DIR_NAME


def get_supervisor_dir(root: Path) -> Path:
    """Get the supervisor runtime root for a project.

    Respects SPECWATCH_STATE_DIR for test isolation.
    """
    override = os.environ.get("SPECWATCH_STATE_DIR")
    if override:
        return Path(override)
    return get_speckit_dir(root) / SUPERVISOR_DIR_NAME


class SupervisorPaths:
    """All runtime paths for one project root."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.base = get_supervisor_dir(self.root)

    @property
    def pid_file(self) -> Path:
        return self.base / "supervisor.pid"

    @property
    def heartbeat_file(self) -> Path:
        return self.base / "heartbeat"

    @property
    def state_file(self) -> Path:
        return self.base / "state.json"

    @property
    def config_file(self) -> Path:
        return self.base / "config.yaml"

    @property
    def inbox_dir(self) -> Path:
        return self.base / "inbox"

    @property
    def outbox_dir(self) -> Path:
        return self.base / "outbox"

    @property
    def observations_dir(self) -> Path:
        return self.base / "observations"

    @property
    def observation_log(self) -> Path:
        return self.observations_dir / "latest.jsonl"

    @property
    def daemon_log(self) -> Path:
        return self.base / "supervisor.log"

    @property
    def debug_log(self) -> Path:
        return self.base / "debug.log"

    @property
    def spawn_lock(self) -> Path:
        return self.base / "spawn.lock"

    @property
    def session_lock(self) -> Path:
        return get_speckit_dir(self.root) / "session.lock"

    def ensure(self) -> None:
        """Create the runtime root and its subdirectories.

        Raises:
            OSError: if the directories cannot be created
        """
        for directory in (self.inbox_dir, self.outbox_dir, self.observations_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def __repr__(self) -> str:
        return f"SupervisorPaths({str(self.root)!r})"
