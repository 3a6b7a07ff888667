"""
Protocol definitions for external dependencies.

These interfaces allow dependency injection for testing, enabling us to
swap the real git-backed implementation with an in-memory mock.
"""

from typing import List, Optional, Protocol, runtime_checkable


@runtime_checkable
class VcsInterface(Protocol):
    """Interface for version-control queries used by the scanner.

    Every query returns None when the backend is unavailable, so callers
    can skip revision-dependent checks instead of failing.
    """

    def is_available(self) -> bool:
        """Whether the project is under version control and the tool works."""
        ...

    def current_branch(self) -> Optional[str]:
        """Name of the checked-out branch."""
        ...

    def current_revision(self) -> Optional[str]:
        """Short identifier of the current commit."""
        ...

    def has_uncommitted_changes(self) -> Optional[bool]:
        """Whether the working tree differs from the index."""
        ...

    def has_staged_changes(self) -> Optional[bool]:
        """Whether the index differs from the current commit."""
        ...

    def changed_files(self, since: Optional[str] = None) -> Optional[List[str]]:
        """Paths changed relative to revision `since` (default: HEAD).

        Args:
            since: revision to diff against; an unknown revision falls
                back to HEAD

        Returns:
            Repository-relative paths, or None if unavailable
        """
        ...
