"""
Project document discovery.

Feature work lives under specs/NNN-name/ (spec.md, plan.md, tasks.md). The
active feature comes from SPECIFY_FEATURE, else the current branch, else the
highest-numbered directory under specs/. Branches map to feature
directories by their three-digit prefix, so 004-fix-bug and 004-add-feature
share specs/004-*/.
"""

import os
import re
from pathlib import Path
from typing import List, Optional, Tuple

from .logging_config import get_logger
from .protocols import VcsInterface
from .settings import SPECS_DIR_NAME


log = get_logger("workspace")

FEATURE_PREFIX = re.compile(r"^(\d{3})-")
TASK_LINE = re.compile(r"^- \[.\]", re.MULTILINE)
DONE_TASK_LINE = re.compile(r"^- \[[xX]\]", re.MULTILINE)

# Policy document locations, first match wins
POLICY_CANDIDATES = (
    Path("constitution.md"),
    Path(".specify") / "memory" / "constitution.md",
)


def read_text_safe(path: Optional[Path]) -> Optional[str]:
    """Read a text file, None if missing or unreadable."""
    if path is None:
        return None
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def latest_feature_dir_name(root: Path) -> Optional[str]:
    """Name of the highest-numbered specs/NNN-* directory."""
    specs_dir = Path(root) / SPECS_DIR_NAME
    best: Optional[Tuple[int, str]] = None
    try:
        entries = list(specs_dir.iterdir())
    except OSError:
        return None
    for entry in entries:
        match = FEATURE_PREFIX.match(entry.name)
        if entry.is_dir() and match:
            number = int(match.group(1))
            if best is None or number > best[0]:
                best = (number, entry.name)
    return best[1] if best else None


def get_active_feature(root: Path, vcs: Optional[VcsInterface] = None) -> Optional[str]:
    """Resolve the active feature name."""
    override = os.environ.get("SPECIFY_FEATURE")
    if override:
        return override
    if vcs is not None:
        branch = vcs.current_branch()
        if branch:
            return branch
    return latest_feature_dir_name(root)


def find_feature_dir(root: Path, feature: Optional[str]) -> Optional[Path]:
    """Find the feature directory for a branch or feature name.

    Only names with a three-digit prefix map to a feature directory;
    anything else is matched exactly.
    """
    if not feature:
        return None
    specs_dir = Path(root) / SPECS_DIR_NAME
    match = FEATURE_PREFIX.match(feature)
    if not match:
        exact = specs_dir / feature
        return exact if exact.is_dir() else None

    prefix = match.group(1)
    matches: List[Path] = sorted(p for p in specs_dir.glob(f"{prefix}-*") if p.is_dir())
    if not matches:
        return None
    if len(matches) > 1:
        log.warning(
            f"Multiple spec directories share prefix {prefix}: "
            f"{', '.join(p.name for p in matches)}; using {matches[0].name}"
        )
    return matches[0]


def find_tasks_file(root: Path, vcs: Optional[VcsInterface] = None) -> Optional[Path]:
    """Path of the active task list, None if there is none."""
    feature_dir = find_feature_dir(root, get_active_feature(root, vcs))
    if feature_dir is None:
        return None
    tasks = feature_dir / "tasks.md"
    return tasks if tasks.is_file() else None


def find_policy_file(root: Path) -> Optional[Path]:
    """Path of the policy (constitution) document, None if absent."""
    for candidate in POLICY_CANDIDATES:
        path = Path(root) / candidate
        if path.is_file():
            return path
    return None


def count_tasks(tasks_text: str) -> Tuple[int, int]:
    """Count checklist items in a task list.

    Returns:
        Tuple of (completed, total)
    """
    total = len(TASK_LINE.findall(tasks_text))
    completed = len(DONE_TASK_LINE.findall(tasks_text))
    return completed, total
