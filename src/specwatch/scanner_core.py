"""
Pure business logic for the Scanner.

These functions contain no I/O and are fully unit-testable.
They are used by Scanner but can be tested independently.
"""

import hashlib
import re
from datetime import datetime
from typing import Iterable, List, Optional

from .settings import SPECS_DIR_NAME


POLICY_TEST_MANDATE = re.compile(r"must.*test", re.IGNORECASE)


def is_scan_due(last_scan: Optional[datetime], now: datetime, interval: float) -> bool:
    """Check whether a scan with the given interval is due.

    Pure function - no side effects, fully testable.

    Args:
        last_scan: When the scan last ran (None if never)
        now: Current time
        interval: Seconds between scans

    Returns:
        True if never run or at least interval seconds have elapsed
    """
    if last_scan is None:
        return True
    return (now - last_scan).total_seconds() >= interval


def is_spec_path(path: str) -> bool:
    """Whether a repository path lies under specs/."""
    return path == SPECS_DIR_NAME or path.startswith(f"{SPECS_DIR_NAME}/")


def find_drifted_files(changed_files: Iterable[str], tasks_text: str) -> List[str]:
    """Changed files that the task list does not mention.

    Pure function - no side effects, fully testable.

    The check is a verbatim substring match against the task list text,
    so a path mentioned inside a longer path counts as referenced.

    Args:
        changed_files: Repository-relative paths of changed files
        tasks_text: Full text of the active task list

    Returns:
        Drifted paths in input order, without duplicates
    """
    drifted = []
    seen = set()
    for path in changed_files:
        if not path or path in seen or is_spec_path(path):
            continue
        seen.add(path)
        if path not in tasks_text:
            drifted.append(path)
    return drifted


def policy_requires_tests(policy_text: str) -> bool:
    """Whether any line of the policy mandates testing ("must ... test")."""
    return any(POLICY_TEST_MANDATE.search(line) for line in policy_text.splitlines())


def tasks_reference_tests(tasks_text: str) -> bool:
    """Whether the task list mentions tests at all."""
    return "test" in tasks_text.lower()


def hash_policy(content: bytes) -> str:
    """Content hash of the policy document in `sha256:<hex>` form."""
    return f"sha256:{hashlib.sha256(content).hexdigest()}"


def policy_hash_changed(previous_hash: str, current_hash: str) -> bool:
    """A change only counts once a previous hash is known."""
    return bool(previous_hash) and previous_hash != current_hash
