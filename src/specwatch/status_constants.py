"""
Status constants for Specwatch.

Centralizes observation types, severities, daemon phases, and their
display mappings.
"""


# =============================================================================
# Observation Types
# =============================================================================

OBS_UNCOMMITTED_CHANGES = "uncommitted_changes"
OBS_STAGED_CHANGES = "staged_changes"
OBS_FILE_DRIFT = "file_drift"
OBS_POLICY_VIOLATION = "policy_violation"
OBS_POLICY_CHANGED = "policy_changed"  # Full scan saw a new policy hash

# Only the full scan produces these
FULL_SCAN_OBSERVATION_TYPES = frozenset({OBS_POLICY_VIOLATION, OBS_POLICY_CHANGED})


# =============================================================================
# Severities
# =============================================================================

SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"
SEVERITY_ERROR = "error"
SEVERITY_CRITICAL = "critical"


# =============================================================================
# Daemon Phases
# =============================================================================

PHASE_INITIALIZING = "initializing"
PHASE_RUNNING = "running"
PHASE_SHUTTING_DOWN = "shutting_down"
PHASE_TERMINATED = "terminated"

# Allowed forward transitions of the main loop
PHASE_TRANSITIONS = {
    PHASE_INITIALIZING: {PHASE_RUNNING, PHASE_SHUTTING_DOWN},
    PHASE_RUNNING: {PHASE_SHUTTING_DOWN},
    PHASE_SHUTTING_DOWN: {PHASE_TERMINATED},
    PHASE_TERMINATED: set(),
}


# =============================================================================
# Response Status
# =============================================================================

RESPONSE_STATUS_HEALTHY = "healthy"


# =============================================================================
# Display Mappings
# =============================================================================

SEVERITY_COLORS = {
    SEVERITY_INFO: "cyan",
    SEVERITY_WARNING: "yellow",
    SEVERITY_ERROR: "red",
    SEVERITY_CRITICAL: "bold red",
}

SEVERITY_EMOJIS = {
    SEVERITY_INFO: "ℹ️",
    SEVERITY_WARNING: "⚠️",
    SEVERITY_ERROR: "❌",
    SEVERITY_CRITICAL: "🔥",
}


def get_severity_color(severity: str) -> str:
    """Get the rich style for a severity."""
    return SEVERITY_COLORS.get(severity, "dim")


def get_severity_emoji(severity: str) -> str:
    """Get the emoji for a severity."""
    return SEVERITY_EMOJIS.get(severity, "•")
