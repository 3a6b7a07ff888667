"""
Pure business logic for the Supervisor Daemon.

These functions contain no I/O and are fully unit-testable.
They are used by SupervisorDaemon but can be tested independently.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from .config import SupervisorConfig
from .scanner_core import is_scan_due
from .status_constants import PHASE_TRANSITIONS, RESPONSE_STATUS_HEALTHY
from .supervisor_state import SupervisorState


SCAN_FULL = "full"
SCAN_DELTA = "delta"


def plan_scan(state: SupervisorState, now: datetime, config: SupervisorConfig) -> Optional[str]:
    """Decide which scan, if any, this tick should run.

    Pure function - no side effects, fully testable.

    The full pass includes the delta pass, so when both are due only the
    full pass runs.

    Returns:
        SCAN_FULL, SCAN_DELTA, or None
    """
    if is_scan_due(state.last_full_scan, now, config.full_scan_interval):
        return SCAN_FULL
    if is_scan_due(state.last_delta_scan, now, config.delta_scan_interval):
        return SCAN_DELTA
    return None


def build_status_result(observation_count: int, status: str = RESPONSE_STATUS_HEALTHY) -> Dict[str, Any]:
    """Result body answered to every message.

    Pure function - no side effects, fully testable.
    """
    return {
        "status": status,
        "observation_count": observation_count,
    }


def advance_phase(current: str, target: str) -> str:
    """Validate a main-loop phase transition.

    Pure function - no side effects, fully testable.

    Raises:
        ValueError: if target is not reachable from current
    """
    if target not in PHASE_TRANSITIONS.get(current, set()):
        raise ValueError(f"Invalid phase transition: {current} -> {target}")
    return target


def seconds_until(deadline: float, now: float) -> float:
    """Remaining sleep before the next tick, never negative."""
    return max(0.0, deadline - now)
