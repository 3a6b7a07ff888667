"""
Unit tests for CLI using Typer.

These tests verify that the CLI correctly handles commands
using Typer's CliRunner.
"""

import json
import os
import re
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from specwatch.cli import app
from specwatch.exceptions import LivenessError, MessageTimeoutError
from specwatch.message_channel import Response
from specwatch.mocks import MockGit
from specwatch.settings import SupervisorPaths
from specwatch.status_constants import OBS_FILE_DRIFT, OBS_UNCOMMITTED_CHANGES
from specwatch.supervisor_state import (
    Observation,
    SupervisorState,
    append_observation_log,
)


def strip_ansi(text: str) -> str:
    """Remove ANSI escape codes from text."""
    return re.sub(r'\x1b\[[0-9;]*m', '', text)


runner = CliRunner()

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def invoke(*args):
    result = runner.invoke(app, list(args))
    result.plain = strip_ansi(result.output)
    return result


class TestHelp:
    """Top-level help and groups."""

    def test_main_help(self):
        result = invoke("--help")

        assert result.exit_code == 0
        for name in ("supervisor", "query", "observations", "status", "lock", "config"):
            assert name in result.plain

    def test_no_args_shows_status_report(self, project):
        with patch("specwatch.cli._shared.get_project_root", return_value=project), \
             patch("specwatch.implementations.RealGit", return_value=MockGit(available=False)):
            result = invoke()

        assert result.exit_code == 0
        assert "Project Status" in result.plain


class TestSupervisorCommands:
    """Tests for the supervisor command group."""

    def test_status_when_stopped(self, project):
        result = invoke("supervisor", "status", "--root", str(project))

        assert result.exit_code == 0
        assert "stopped" in result.plain

    def test_status_shows_state(self, project):
        paths = SupervisorPaths(project)
        paths.ensure()
        SupervisorState(current_branch="003-widgets", current_revision="def5678", phase="running").save(paths.state_file)

        result = invoke("supervisor", "--root", str(project))

        assert "Phase: running" in result.plain
        assert "003-widgets" in result.plain

    def test_status_queries_healthy_daemon(self, project):
        with patch("specwatch.liveness.get_supervisor_pid", return_value=os.getpid()), \
                patch("specwatch.liveness.is_healthy", return_value=True), \
                patch("specwatch.message_channel.query_supervisor",
                      return_value={"status": "healthy", "observation_count": 4}):
            result = invoke("supervisor", "status", "--root", str(project))

        assert "running" in result.plain
        assert "Live: healthy (4 observations)" in result.plain

    def test_start_reports_degraded(self, project):
        with patch("specwatch.process_supervisor.ensure_running", side_effect=LivenessError("did not become healthy")):
            result = invoke("supervisor", "start", "--root", str(project))

        assert result.exit_code == 1
        assert "Degraded:" in result.plain

    def test_ensure_degraded_still_succeeds(self, project):
        with patch("specwatch.process_supervisor.ensure_running", return_value=False):
            result = invoke("supervisor", "ensure", "--root", str(project))

        assert result.exit_code == 0
        assert "Degraded:" in result.plain

    def test_stop_when_not_running(self, project):
        result = invoke("supervisor", "stop", "--root", str(project))

        assert result.exit_code == 0
        assert "not running" in result.plain

    def test_watch_without_log(self, project):
        result = invoke("supervisor", "watch", "--root", str(project))

        assert result.exit_code == 1
        assert "Log file not found" in result.plain


class TestQueryCommand:
    """Tests for the query command."""

    @pytest.fixture(autouse=True)
    def no_spawn(self):
        with patch("specwatch.process_supervisor.ensure_running", return_value=True):
            yield

    def test_prints_result(self, project):
        response = Response(id="msg-1", result={"status": "healthy", "observation_count": 2})
        with patch("specwatch.message_channel.MessageChannel.request", return_value=response) as request:
            result = invoke("query", "status", "--payload", '{"a": 1}', "--root", str(project))

        assert result.exit_code == 0
        assert json.loads(result.output) == {"status": "healthy", "observation_count": 2}
        assert request.call_args.args[:2] == ("status", {"a": 1})

    def test_timeout_is_degraded(self, project):
        with patch("specwatch.message_channel.MessageChannel.request",
                   side_effect=MessageTimeoutError("msg-1", 5)):
            result = invoke("query", "--root", str(project))

        assert result.exit_code == 0
        assert "Degraded:" in result.plain

    def test_invalid_payload(self, project):
        result = invoke("query", "status", "--payload", "{nope", "--root", str(project))

        assert result.exit_code == 1
        assert "Error:" in result.plain

    def test_duplicate_id_is_error(self, project):
        paths = SupervisorPaths(project)
        paths.ensure()
        (paths.inbox_dir / "q1.json").write_text('{"id": "q1", "type": "status"}')

        result = invoke("query", "--id", "q1", "--timeout", "0.1", "--root", str(project))

        assert result.exit_code == 1
        assert "Error:" in result.plain


class TestObservationsCommand:
    """Tests for the observations command."""

    def _save(self, project, observations):
        paths = SupervisorPaths(project)
        paths.ensure()
        state = SupervisorState()
        for o in observations:
            state.record_observation(o, 100)
            append_observation_log(paths.observation_log, o)
        state.save(paths.state_file)

    def test_none_recorded(self, project):
        result = invoke("observations", "--root", str(project))

        assert result.exit_code == 0
        assert "No observations recorded" in result.plain

    def test_json_lines_with_limit(self, project):
        self._save(project, [
            Observation(type=OBS_FILE_DRIFT, severity="warning", message=f"m{i}", created_at=T0)
            for i in range(5)
        ])

        result = invoke("observations", "--json", "--limit", "2", "--root", str(project))

        lines = [json.loads(line) for line in result.output.splitlines()]
        assert [line["message"] for line in lines] == ["m3", "m4"]

    def test_table(self, project):
        self._save(project, [
            Observation(type=OBS_UNCOMMITTED_CHANGES, severity="warning", message="dirty", created_at=T0),
        ])

        result = invoke("observations", "--root", str(project))

        assert result.exit_code == 0
        assert "uncommitted_changes" in result.plain

    def test_all_reads_log(self, project):
        paths = SupervisorPaths(project)
        append_observation_log(
            paths.observation_log,
            Observation(type=OBS_FILE_DRIFT, severity="warning", message="logged only", created_at=T0),
        )

        result = invoke("observations", "--all", "--json", "--root", str(project))

        assert json.loads(result.output)["message"] == "logged only"


class TestStatusCommand:
    """Tests for the project status report."""

    def test_report(self, project, feature):
        vcs = MockGit(branch="003-widgets", revision="def5678abc", uncommitted=True)
        with patch("specwatch.implementations.RealGit", return_value=vcs):
            result = invoke("status", "--root", str(project))

        assert result.exit_code == 0
        out = result.plain
        assert "Branch: 003-widgets" in out
        assert "Commit: def5678" in out
        assert "Uncommitted changes present" in out
        assert "plan.md (missing)" in out
        assert "Tasks: 1/3 complete (2 remaining)" in out
        assert "Supervisor Observations: None" in out

    def test_not_a_repository(self, project):
        with patch("specwatch.implementations.RealGit", return_value=MockGit(available=False)):
            result = invoke("status", "--root", str(project))

        assert "Not a git repository" in result.plain


class TestLockCommands:
    """Tests for the lock command group."""

    def _lock_path(self, project):
        return SupervisorPaths(project).session_lock

    def test_status_free(self, project):
        result = invoke("lock", "status", "--root", str(project))

        assert "free" in result.plain

    def test_status_held_and_stale(self, project):
        lock = self._lock_path(project)
        lock.parent.mkdir(parents=True)
        lock.write_text(str(os.getpid()))
        assert "held by PID" in invoke("lock", "status", "--root", str(project)).plain

        lock.write_text("99999999")
        assert "stale" in invoke("lock", "status", "--root", str(project)).plain

    def test_clear_refuses_live_holder_without_force(self, project):
        lock = self._lock_path(project)
        lock.parent.mkdir(parents=True)
        lock.write_text(str(os.getpid()))

        result = invoke("lock", "clear", "--root", str(project))
        assert result.exit_code == 1
        assert lock.exists()

        result = invoke("lock", "clear", "--force", "--root", str(project))
        assert result.exit_code == 0
        assert not lock.exists()

    def test_clear_stale(self, project):
        lock = self._lock_path(project)
        lock.parent.mkdir(parents=True)
        lock.write_text("99999999")

        result = invoke("lock", "clear", "--root", str(project))

        assert result.exit_code == 0
        assert "Cleared session lock" in result.plain
        assert not lock.exists()

    def test_run_releases_lock(self, project):
        result = invoke("lock", "run", "--root", str(project), "--", "sh", "-c", "exit 0")

        assert result.exit_code == 0
        assert not self._lock_path(project).exists()

    def test_run_propagates_exit_code(self, project):
        result = invoke("lock", "run", "--root", str(project), "--", "sh", "-c", "exit 3")

        assert result.exit_code == 3
        assert not self._lock_path(project).exists()

    def test_run_times_out_when_held(self, project):
        lock = self._lock_path(project)
        lock.parent.mkdir(parents=True)
        lock.write_text(str(os.getpid()))

        result = invoke("lock", "run", "--max-wait", "0.1", "--root", str(project), "--", "sh", "-c", "exit 0")

        assert result.exit_code == 1
        assert "Error:" in result.plain
        assert lock.read_text() == str(os.getpid())


class TestConfigCommands:
    """Tests for the config command group."""

    def test_init_then_show(self, project):
        result = invoke("config", "init", "--root", str(project))
        assert result.exit_code == 0
        assert SupervisorPaths(project).config_file.exists()

        result = invoke("config", "show", "--root", str(project))
        assert "full_scan_interval: 300" in result.plain

    def test_init_refuses_overwrite(self, project):
        invoke("config", "init", "--root", str(project))

        result = invoke("config", "init", "--root", str(project))

        assert result.exit_code == 1
        assert "already exists" in result.plain

    def test_show_defaults_without_file(self, project):
        result = invoke("config", "--root", str(project))

        assert result.exit_code == 0
        assert "heartbeat_interval: 30" in result.plain

    def test_path(self, project):
        result = invoke("config", "path", "--root", str(project))

        assert result.output.strip() == str(SupervisorPaths(project).config_file)
