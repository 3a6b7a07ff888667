"""
Pytest configuration for specwatch tests

This module provides shared fixtures and configuration for all tests.
"""

import shutil
import subprocess
from pathlib import Path

import pytest


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "integration: mark test as running real git or daemon processes"
    )


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


@pytest.fixture
def git_repo(tmp_path):
    """A real git repository with one commit and a feature directory.

    Layout:
        specs/001-demo/{spec.md,plan.md,tasks.md}
        src/app.py
    on branch 001-demo.
    """
    if shutil.which("git") is None:
        pytest.skip("git not installed or not in PATH")

    repo = tmp_path / "repo"
    repo.mkdir()
    _git(repo, "init", "-q")
    _git(repo, "checkout", "-q", "-b", "001-demo")
    _git(repo, "config", "user.email", "test@example.com")
    _git(repo, "config", "user.name", "Test")
    _git(repo, "config", "commit.gpgsign", "false")

    feature = repo / "specs" / "001-demo"
    feature.mkdir(parents=True)
    (feature / "spec.md").write_text("# Demo\n")
    (feature / "plan.md").write_text("# Plan\n")
    (feature / "tasks.md").write_text(
        "# Tasks\n"
        "- [X] T001 Create src/app.py\n"
        "- [ ] T002 Add tests in tests/test_app.py\n"
    )
    (repo / "src").mkdir()
    (repo / "src" / "app.py").write_text("print('hi')\n")

    _git(repo, "add", "-A")
    _git(repo, "commit", "-q", "-m", "initial")
    return repo


@pytest.fixture
def git():
    """Run git commands in a repository: git(repo, 'status')."""
    return _git
