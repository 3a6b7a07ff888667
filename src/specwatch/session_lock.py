"""
Session lock guarding mutation of shared project documents.

Foreground callers that edit task lists or plans hold this lock for the
duration of the edit. The marker is created with O_CREAT | O_EXCL, so two
processes can never both hold it. It records the holder PID for diagnosis
but never expires: a crashed holder leaves a stale marker that must be
cleared by hand (`specwatch lock clear`).
"""

import os
import time
from pathlib import Path
from typing import Optional

from .exceptions import LockTimeoutError
from .logging_config import get_logger
from .pid_utils import is_pid_alive, read_pid
from .settings import DAEMON


log = get_logger("lock")


class SessionLock:
    """Exclusive, scoped lock backed by a marker file.

    Use as a context manager so the marker is released on every exit path:

        with SessionLock(paths.session_lock, max_wait=30):
            edit_tasks_file()
    """

    def __init__(
        self,
        path: Path,
        max_wait: float = DAEMON.lock_max_wait,
        retry_interval: float = DAEMON.lock_retry_interval,
    ):
        self.path = Path(path)
        self.max_wait = max_wait
        self.retry_interval = retry_interval
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def _try_create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        try:
            os.write(fd, str(os.getpid()).encode())
        finally:
            os.close(fd)
        return True

    def acquire(self, max_wait: Optional[float] = None) -> None:
        """Acquire the lock, retrying with fixed backoff.

        Raises:
            LockTimeoutError: if the marker is still held after max_wait
        """
        if self._held:
            return
        max_wait = self.max_wait if max_wait is None else max_wait
        self.path.parent.mkdir(parents=True, exist_ok=True)
        deadline = time.monotonic() + max_wait

        while True:
            if self._try_create():
                self._held = True
                log.debug(f"Acquired session lock {self.path}")
                return
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise LockTimeoutError(self.path, max_wait, holder_pid=read_pid(self.path))
            time.sleep(min(self.retry_interval, remaining))

    def release(self) -> None:
        """Remove the marker if this instance holds it."""
        if not self._held:
            return
        self._held = False
        try:
            self.path.unlink()
            log.debug(f"Released session lock {self.path}")
        except FileNotFoundError:
            log.warning(f"Session lock {self.path} was removed while held")

    def __enter__(self) -> "SessionLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def get_lock_holder(path: Path) -> Optional[int]:
    """PID recorded in the lock marker, None if unlocked or unreadable."""
    return read_pid(path)


def is_lock_stale(path: Path) -> bool:
    """True when a marker exists but its holder process is gone."""
    if not Path(path).exists():
        return False
    pid = read_pid(path)
    return pid is None or not is_pid_alive(pid)


def clear_lock(path: Path) -> bool:
    """Remove a lock marker by hand. Returns True if one was removed."""
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return False
    log.info(f"Cleared session lock {path}")
    return True
