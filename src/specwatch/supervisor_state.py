"""
Supervisor state management.

The state document has a single writer (the daemon) and any number of
read-only observers (CLI callers). It is always rewritten whole via a
temporary file and rename, so readers never see a partial write.
"""

import json
import os
import tempfile
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .settings import DAEMON
from .status_constants import PHASE_INITIALIZING, SEVERITY_INFO


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp, assuming UTC when no offset is given."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, TypeError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def new_observation_id() -> str:
    return f"obs-{uuid.uuid4().hex[:12]}"


@dataclass
class Observation:
    """A single anomaly or informational note recorded by the scanner."""

    type: str
    severity: str
    message: str
    id: str = field(default_factory=new_observation_id)
    created_at: datetime = field(default_factory=utcnow)
    resolved: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "message": self.message,
            "created_at": _iso(self.created_at),
            "resolved": self.resolved,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Observation":
        return cls(
            id=data.get("id") or new_observation_id(),
            type=data.get("type", "unknown"),
            severity=data.get("severity", SEVERITY_INFO),
            message=data.get("message", ""),
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
            resolved=bool(data.get("resolved", False)),
        )


@dataclass
class SupervisorState:
    """Persisted record of daemon identity, project context and observations."""

    pid: Optional[int] = None
    started_at: Optional[datetime] = None
    last_heartbeat: Optional[datetime] = None
    current_branch: str = "unknown"
    current_revision: str = "unknown"
    policy_hash: str = ""
    last_full_scan: Optional[datetime] = None
    last_delta_scan: Optional[datetime] = None
    observations: List[Observation] = field(default_factory=list)
    processed_message_ids: List[str] = field(default_factory=list)
    phase: str = PHASE_INITIALIZING

    def beat(self, now: Optional[datetime] = None) -> datetime:
        """Advance the heartbeat; it never moves backwards."""
        now = now or utcnow()
        if self.last_heartbeat is None or now > self.last_heartbeat:
            self.last_heartbeat = now
        return self.last_heartbeat

    def record_observation(self, observation: Observation, max_observations: int) -> None:
        """Append an observation, evicting the oldest beyond the bound."""
        self.observations.append(observation)
        overflow = len(self.observations) - max_observations
        if overflow > 0:
            del self.observations[:overflow]

    def mark_processed(self, message_id: str, limit: int = DAEMON.max_processed_ids) -> None:
        if message_id in self.processed_message_ids:
            return
        self.processed_message_ids.append(message_id)
        overflow = len(self.processed_message_ids) - limit
        if overflow > 0:
            del self.processed_message_ids[:overflow]

    def to_dict(self) -> dict:
        """Convert state to dictionary for JSON serialization."""
        return {
            "pid": self.pid,
            "started_at": _iso(self.started_at),
            "last_heartbeat": _iso(self.last_heartbeat),
            "current_branch": self.current_branch,
            "current_revision": self.current_revision,
            "policy_hash": self.policy_hash,
            "last_full_scan": _iso(self.last_full_scan),
            "last_delta_scan": _iso(self.last_delta_scan),
            "observations": [o.to_dict() for o in self.observations],
            "processed_message_ids": list(self.processed_message_ids),
            "phase": self.phase,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SupervisorState":
        """Create state from dictionary, tolerating missing fields."""
        return cls(
            pid=data.get("pid"),
            started_at=parse_timestamp(data.get("started_at")),
            last_heartbeat=parse_timestamp(data.get("last_heartbeat")),
            current_branch=data.get("current_branch") or "unknown",
            current_revision=data.get("current_revision") or "unknown",
            policy_hash=data.get("policy_hash") or "",
            last_full_scan=parse_timestamp(data.get("last_full_scan")),
            last_delta_scan=parse_timestamp(data.get("last_delta_scan")),
            observations=[
                Observation.from_dict(o) for o in data.get("observations", [])
                if isinstance(o, dict)
            ],
            processed_message_ids=[str(m) for m in data.get("processed_message_ids", [])],
            phase=data.get("phase") or PHASE_INITIALIZING,
        )

    def save(self, state_file: Path) -> None:
        """Write the whole document atomically (temp file then rename).

        Raises:
            OSError: if the document cannot be written
        """
        write_json_atomic(Path(state_file), self.to_dict())

    @classmethod
    def load(cls, state_file: Path) -> Optional["SupervisorState"]:
        """Load state, None if the file is missing or invalid."""
        try:
            with open(state_file) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError):
            return None
        if not isinstance(data, dict):
            return None
        return cls.from_dict(data)


def write_json_atomic(path: Path, data: dict) -> None:
    """Write JSON to path via a sibling temp file and os.replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


def append_observation_log(log_file: Path, observation: Observation) -> None:
    """Append one observation as a JSON line to the observation log."""
    log_file.parent.mkdir(parents=True, exist_ok=True)
    with open(log_file, "a") as f:
        f.write(json.dumps(observation.to_dict()) + "\n")


def read_observation_log(log_file: Path) -> List[Observation]:
    """Read every parseable observation from the log, oldest first."""
    observations = []
    try:
        with open(log_file) as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if isinstance(data, dict):
                    observations.append(Observation.from_dict(data))
    except OSError:
        return []
    return observations


def get_supervisor_state(state_file: Path) -> Optional[SupervisorState]:
    """Convenience reader for callers."""
    return SupervisorState.load(state_file)
