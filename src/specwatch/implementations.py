"""
Real implementations of protocol interfaces.

These are production implementations that shell out to git.
"""

import subprocess
from pathlib import Path
from typing import List, Optional

from .logging_config import get_logger


log = get_logger("git")


class RealGit:
    """Production implementation of VcsInterface using the git CLI."""

    def __init__(self, root: Path, timeout: int = 10):
        self.root = Path(root)
        self.timeout = timeout

    def _run(self, *args: str) -> Optional[subprocess.CompletedProcess]:
        try:
            return subprocess.run(
                ["git", *args],
                cwd=self.root,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (subprocess.SubprocessError, OSError) as e:
            log.debug(f"git {' '.join(args)} failed: {e}")
            return None

    def _output(self, *args: str) -> Optional[str]:
        result = self._run(*args)
        if result is None or result.returncode != 0:
            return None
        return result.stdout.strip()

    def is_available(self) -> bool:
        return self._output("rev-parse", "--git-dir") is not None

    def current_branch(self) -> Optional[str]:
        branch = self._output("rev-parse", "--abbrev-ref", "HEAD")
        if branch:
            return branch
        # Repository without commits
        return self._output("symbolic-ref", "--short", "HEAD") or None

    def current_revision(self) -> Optional[str]:
        return self._output("rev-parse", "--short", "HEAD") or None

    def _diff_quiet(self, *args: str) -> Optional[bool]:
        # Exit 0: no differences, 1: differences, anything else: error
        result = self._run("diff", "--quiet", *args)
        if result is None or result.returncode not in (0, 1):
            return None
        return result.returncode == 1

    def has_uncommitted_changes(self) -> Optional[bool]:
        return self._diff_quiet()

    def has_staged_changes(self) -> Optional[bool]:
        return self._diff_quiet("--cached")

    def _name_only(self, *args: str) -> Optional[List[str]]:
        result = self._run("diff", "--name-only", "-z", *args)
        if result is None or result.returncode != 0:
            return None
        return [p for p in result.stdout.split("\0") if p]

    def changed_files(self, since: Optional[str] = None) -> Optional[List[str]]:
        for base in (since, "HEAD"):
            if not base or base == "unknown":
                continue
            files = self._name_only(base)
            if files is not None:
                return files

        # No commits yet: everything staged or modified counts
        staged = self._name_only("--cached")
        unstaged = self._name_only()
        if staged is None and unstaged is None:
            return None
        return sorted(set(staged or []) | set(unstaged or []))
