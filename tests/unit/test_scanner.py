"""Tests for Scanner with an in-memory VCS."""

from datetime import datetime, timezone

import pytest

from specwatch.mocks import MockGit
from specwatch.scanner import Scanner
from specwatch.scanner_core import hash_policy
from specwatch.status_constants import (
    FULL_SCAN_OBSERVATION_TYPES,
    OBS_FILE_DRIFT,
    OBS_POLICY_CHANGED,
    OBS_POLICY_VIOLATION,
    OBS_STAGED_CHANGES,
    OBS_UNCOMMITTED_CHANGES,
    SEVERITY_INFO,
    SEVERITY_WARNING,
)
from specwatch.supervisor_state import SupervisorState


NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def vcs():
    return MockGit(branch="003-widgets", revision="def5678")


def types_of(observations):
    return [o.type for o in observations]


class TestDeltaScan:
    """Tests for Scanner.delta_scan."""

    def test_clean_tree_produces_nothing(self, project, feature, vcs):
        state = SupervisorState()

        observations = Scanner(project, vcs).delta_scan(state, NOW)

        assert observations == []
        assert state.current_branch == "003-widgets"
        assert state.current_revision == "def5678"
        assert state.last_delta_scan == NOW
        assert state.last_full_scan is None

    def test_uncommitted_and_staged(self, project, feature, vcs):
        vcs.uncommitted = True
        vcs.staged = True

        observations = Scanner(project, vcs).delta_scan(SupervisorState(), NOW)

        by_type = {o.type: o for o in observations}
        assert by_type[OBS_UNCOMMITTED_CHANGES].severity == SEVERITY_WARNING
        assert by_type[OBS_STAGED_CHANGES].severity == SEVERITY_INFO
        assert all(o.created_at == NOW for o in observations)

    def test_drift_for_unreferenced_file(self, project, feature, vcs):
        vcs.changed = ["src/widgets.py", "src/unrelated.py", "specs/003-widgets/plan.md"]

        observations = Scanner(project, vcs).delta_scan(SupervisorState(), NOW)

        assert types_of(observations) == [OBS_FILE_DRIFT]
        assert observations[0].message == "File modified without corresponding task: src/unrelated.py"
        assert observations[0].severity == SEVERITY_WARNING

    def test_drift_diffed_against_last_known_revision(self, project, feature, vcs):
        vcs.changed_since["abc0000"] = ["src/other.py"]
        state = SupervisorState(current_revision="abc0000")

        observations = Scanner(project, vcs).delta_scan(state, NOW)

        assert "changed_files:abc0000" in vcs.calls
        assert [o.message for o in observations] == [
            "File modified without corresponding task: src/other.py"
        ]

    def test_no_task_list_skips_drift(self, project, vcs):
        vcs.changed = ["src/unrelated.py"]

        assert Scanner(project, vcs).delta_scan(SupervisorState(), NOW) == []

    def test_vcs_unavailable_is_absorbed(self, project, feature):
        state = SupervisorState(current_branch="old", current_revision="old")
        vcs = MockGit(available=False, uncommitted=True, changed=["src/x.py"])

        observations = Scanner(project, vcs).delta_scan(state, NOW)

        assert observations == []
        assert state.current_branch == "old"
        assert state.last_delta_scan == NOW

    def test_delta_never_checks_policy(self, project, feature, vcs):
        (project / "constitution.md").write_text("All code must include tests.\n")
        (feature / "tasks.md").write_text("- [ ] Build it\n")
        state = SupervisorState()

        observations = Scanner(project, vcs).delta_scan(state, NOW)

        assert not set(types_of(observations)) & FULL_SCAN_OBSERVATION_TYPES
        assert state.policy_hash == ""


class TestFullScan:
    """Tests for Scanner.full_scan."""

    def test_includes_delta_checks(self, project, feature, vcs):
        vcs.uncommitted = True
        state = SupervisorState()

        observations = Scanner(project, vcs).full_scan(state, NOW)

        assert OBS_UNCOMMITTED_CHANGES in types_of(observations)
        assert state.last_delta_scan == NOW
        assert state.last_full_scan == NOW

    def test_records_policy_hash(self, project, feature, vcs):
        (project / "constitution.md").write_text("Be kind.\n")
        state = SupervisorState()

        observations = Scanner(project, vcs).full_scan(state, NOW)

        assert observations == []
        assert state.policy_hash == hash_policy(b"Be kind.\n")

    def test_policy_change_noted(self, project, feature, vcs):
        (project / "constitution.md").write_text("Version 2\n")
        state = SupervisorState(policy_hash=hash_policy(b"Version 1\n"))

        observations = Scanner(project, vcs).full_scan(state, NOW)

        assert types_of(observations) == [OBS_POLICY_CHANGED]
        assert observations[0].severity == SEVERITY_INFO
        assert state.policy_hash == hash_policy(b"Version 2\n")

    def test_policy_violation_when_tests_mandated_but_absent(self, project, feature, vcs):
        (project / "constitution.md").write_text("Every feature MUST ship with tests.\n")
        (feature / "tasks.md").write_text("- [ ] T001 Build widgets\n")

        observations = Scanner(project, vcs).full_scan(SupervisorState(), NOW)

        violation = [o for o in observations if o.type == OBS_POLICY_VIOLATION]
        assert len(violation) == 1
        assert violation[0].severity == SEVERITY_WARNING
        assert violation[0].message == "Policy requires tests, but no test tasks found in tasks.md"

    def test_no_violation_when_tasks_mention_tests(self, project, feature, vcs):
        (project / "constitution.md").write_text("Every feature must ship with tests.\n")

        observations = Scanner(project, vcs).full_scan(SupervisorState(), NOW)

        assert OBS_POLICY_VIOLATION not in types_of(observations)

    def test_no_policy_document(self, project, feature, vcs):
        state = SupervisorState()

        assert Scanner(project, vcs).full_scan(state, NOW) == []
        assert state.policy_hash == ""
