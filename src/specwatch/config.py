"""
Supervisor daemon configuration.

The config document lives at <runtime root>/config.yaml:

    heartbeat_interval: 30      # seconds between ticks, below 60
    delta_scan_interval: 30     # seconds between cheap scans
    full_scan_interval: 300     # seconds between expensive scans
    max_observations: 100       # observations kept in state

It is read once when the daemon starts and never reloaded by that process.
"""

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

from .logging_config import get_logger
from .settings import DAEMON


log = get_logger("config")


CONFIG_TEMPLATE = """\
# Specwatch supervisor configuration
# Changes take effect the next time the supervisor starts.

# Seconds between heartbeats (one loop iteration per heartbeat).
# Must stay below the 60s liveness window.
heartbeat_interval: {heartbeat_interval}

# Seconds between delta scans (git status, file drift)
delta_scan_interval: {delta_scan_interval}

# Seconds between full scans (delta scan + policy document checks)
full_scan_interval: {full_scan_interval}

# Maximum observations kept in state.json (oldest evicted first)
max_observations: {max_observations}
"""


@dataclass(frozen=True)
class SupervisorConfig:
    """Immutable daemon configuration."""

    heartbeat_interval: int = DAEMON.heartbeat_interval
    delta_scan_interval: int = DAEMON.delta_scan_interval
    full_scan_interval: int = DAEMON.full_scan_interval
    max_observations: int = DAEMON.max_observations

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SupervisorConfig":
        """Build a config, falling back to defaults for bad or missing keys."""
        defaults = cls()
        values = {}
        for key, default in defaults.to_dict().items():
            value = data.get(key, default)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                value = default
            elif key == "heartbeat_interval" and value >= DAEMON.max_heartbeat_age:
                log.warning(
                    f"heartbeat_interval {value}s is not below the {DAEMON.max_heartbeat_age}s "
                    f"liveness window; using {default}s"
                )
                value = default
            values[key] = value
        return cls(**values)


def load_config(path: Path) -> Dict[str, Any]:
    """Load the raw config mapping.

    Returns an empty dict when the file is missing, unreadable, invalid
    YAML, or not a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError):
        return {}
    if not isinstance(data, dict):
        return {}
    return data


def save_config(path: Path, config: SupervisorConfig) -> None:
    """Write a documented config file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(CONFIG_TEMPLATE.format(**config.to_dict()))


def load_supervisor_config(path: Path, create: bool = False) -> SupervisorConfig:
    """Load the daemon config, optionally writing defaults when absent."""
    path = Path(path)
    if not path.exists():
        config = SupervisorConfig()
        if create:
            save_config(path, config)
        return config
    return SupervisorConfig.from_dict(load_config(path))
