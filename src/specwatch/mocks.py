"""
Mock implementations of protocol interfaces for testing.
"""

from typing import Dict, List, Optional


class MockGit:
    """In-memory implementation of VcsInterface.

    Set attributes directly to shape what the scanner sees. With
    `available=False` every query returns None, as when git is missing.
    """

    def __init__(
        self,
        branch: str = "main",
        revision: str = "abc1234",
        uncommitted: bool = False,
        staged: bool = False,
        changed: Optional[List[str]] = None,
        available: bool = True,
    ):
        self.branch = branch
        self.revision = revision
        self.uncommitted = uncommitted
        self.staged = staged
        self.changed = list(changed or [])
        self.available = available
        # Diffs against specific revisions
        self.changed_since: Dict[str, List[str]] = {}
        self.calls: List[str] = []

    def is_available(self) -> bool:
        return self.available

    def current_branch(self) -> Optional[str]:
        self.calls.append("current_branch")
        return self.branch if self.available else None

    def current_revision(self) -> Optional[str]:
        self.calls.append("current_revision")
        return self.revision if self.available else None

    def has_uncommitted_changes(self) -> Optional[bool]:
        self.calls.append("has_uncommitted_changes")
        return self.uncommitted if self.available else None

    def has_staged_changes(self) -> Optional[bool]:
        self.calls.append("has_staged_changes")
        return self.staged if self.available else None

    def changed_files(self, since: Optional[str] = None) -> Optional[List[str]]:
        self.calls.append(f"changed_files:{since}")
        if not self.available:
            return None
        if since and since in self.changed_since:
            return list(self.changed_since[since])
        return list(self.changed)
