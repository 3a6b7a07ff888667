"""
Delta and full scanning passes.

The delta pass is cheap (proportional to the number of changed files) and
runs every delta interval. The full pass adds the policy document checks
and runs on the much longer full interval.

Both passes update the project context fields of the SupervisorState they
are given and return the new Observations; recording them is up to the
caller.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .logging_config import get_logger
from .protocols import VcsInterface
from .scanner_core import (
    find_drifted_files,
    hash_policy,
    policy_hash_changed,
    policy_requires_tests,
    tasks_reference_tests,
)
from .status_constants import (
    OBS_FILE_DRIFT,
    OBS_POLICY_CHANGED,
    OBS_POLICY_VIOLATION,
    OBS_STAGED_CHANGES,
    OBS_UNCOMMITTED_CHANGES,
    SEVERITY_INFO,
    SEVERITY_WARNING,
)
from .supervisor_state import Observation, SupervisorState, utcnow
from .workspace import find_policy_file, find_tasks_file, read_text_safe


log = get_logger("scanner")


class Scanner:
    """Detects drift and policy violations in one project."""

    def __init__(self, root: Path, vcs: VcsInterface):
        self.root = Path(root)
        self.vcs = vcs

    def _observe(self, obs_type: str, severity: str, message: str, now: datetime) -> Observation:
        return Observation(type=obs_type, severity=severity, message=message, created_at=now)

    def delta_scan(self, state: SupervisorState, now: Optional[datetime] = None) -> List[Observation]:
        """Refresh git context, flag uncommitted/staged changes and file drift."""
        now = now or utcnow()
        observations: List[Observation] = []
        previous_revision = state.current_revision

        if not self.vcs.is_available():
            # Revision-dependent checks are skipped; nothing else is cheap
            log.debug("Version control unavailable; skipping git checks")
            state.last_delta_scan = now
            return observations

        state.current_branch = self.vcs.current_branch() or "unknown"
        state.current_revision = self.vcs.current_revision() or "unknown"

        if self.vcs.has_uncommitted_changes():
            observations.append(self._observe(
                OBS_UNCOMMITTED_CHANGES, SEVERITY_WARNING,
                "Uncommitted changes detected in working directory", now,
            ))
        if self.vcs.has_staged_changes():
            observations.append(self._observe(
                OBS_STAGED_CHANGES, SEVERITY_INFO,
                "Staged changes ready to commit", now,
            ))

        observations.extend(self._detect_drift(previous_revision, now))
        state.last_delta_scan = now
        return observations

    def _detect_drift(self, since: Optional[str], now: datetime) -> List[Observation]:
        tasks_file = find_tasks_file(self.root, self.vcs)
        tasks_text = read_text_safe(tasks_file)
        if tasks_text is None:
            log.debug("No active task list; skipping drift detection")
            return []

        changed = self.vcs.changed_files(since)
        if changed is None:
            return []

        return [
            self._observe(
                OBS_FILE_DRIFT, SEVERITY_WARNING,
                f"File modified without corresponding task: {path}", now,
            )
            for path in find_drifted_files(changed, tasks_text)
        ]

    def full_scan(self, state: SupervisorState, now: Optional[datetime] = None) -> List[Observation]:
        """Delta pass plus policy hash tracking and policy compliance."""
        now = now or utcnow()
        observations = self.delta_scan(state, now)
        observations.extend(self._check_policy(state, now))
        state.last_full_scan = now
        return observations

    def _check_policy(self, state: SupervisorState, now: datetime) -> List[Observation]:
        policy_file = find_policy_file(self.root)
        if policy_file is None:
            return []
        try:
            content = policy_file.read_bytes()
        except OSError as e:
            log.warning(f"Could not read policy document {policy_file}: {e}")
            return []

        observations: List[Observation] = []
        current_hash = hash_policy(content)
        if policy_hash_changed(state.policy_hash, current_hash):
            observations.append(self._observe(
                OBS_POLICY_CHANGED, SEVERITY_INFO,
                f"Policy document changed: {policy_file.name}", now,
            ))
        state.policy_hash = current_hash

        policy_text = content.decode("utf-8", errors="replace")
        if policy_requires_tests(policy_text):
            tasks_text = read_text_safe(find_tasks_file(self.root, self.vcs))
            if tasks_text is not None and not tasks_reference_tests(tasks_text):
                observations.append(self._observe(
                    OBS_POLICY_VIOLATION, SEVERITY_WARNING,
                    "Policy requires tests, but no test tasks found in tasks.md", now,
                ))

        return observations
