"""
Unit test configuration for Specwatch.

Every test gets its own supervisor runtime root so nothing touches a real
project's .speckit directory.
"""

import logging

import pytest


@pytest.fixture(autouse=True)
def isolated_state_dir(tmp_path, monkeypatch):
    """Point SPECWATCH_STATE_DIR at a per-test temp directory.

    Also clears SPECIFY_FEATURE so feature discovery only sees what the
    test sets up.
    """
    state_dir = tmp_path / "state"
    monkeypatch.setenv("SPECWATCH_STATE_DIR", str(state_dir))
    monkeypatch.delenv("SPECIFY_FEATURE", raising=False)
    return state_dir


@pytest.fixture
def project(tmp_path):
    """An empty project root with a specs/ directory."""
    root = tmp_path / "project"
    (root / "specs").mkdir(parents=True)
    return root


@pytest.fixture
def feature(project):
    """A feature directory specs/003-widgets with a task list."""
    feature_dir = project / "specs" / "003-widgets"
    feature_dir.mkdir()
    (feature_dir / "spec.md").write_text("# Widgets\n")
    (feature_dir / "tasks.md").write_text(
        "# Tasks\n"
        "- [X] T001 Implement src/widgets.py\n"
        "- [ ] T002 Write unit test for widgets\n"
        "- [ ] T003 Document docs/widgets.md\n"
    )
    return feature_dir


@pytest.fixture(autouse=True)
def reset_specwatch_logger():
    """Undo handler setup done by CLI or daemon entry points."""
    yield
    logger = logging.getLogger("specwatch")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
