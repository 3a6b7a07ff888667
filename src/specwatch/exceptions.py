"""
Exception types for Specwatch.

Each error says whether the caller can keep going in a degraded mode
(`degraded = True`) or must stop and act (`degraded = False`).
"""


class SpecwatchError(Exception):
    """Base class for all Specwatch errors."""

    degraded = False

    @property
    def label(self) -> str:
        """Human-readable prefix distinguishing degraded from fatal."""
        return "Degraded" if self.degraded else "Error"


class RuntimeRootError(SpecwatchError):
    """The supervisor runtime directory could not be created."""


class LivenessError(SpecwatchError):
    """The supervisor daemon is not running and could not be respawned."""

    degraded = True


class LockTimeoutError(SpecwatchError):
    """The session lock could not be acquired within the allowed wait."""

    def __init__(self, path, max_wait: float, holder_pid=None):
        self.path = path
        self.max_wait = max_wait
        self.holder_pid = holder_pid
        holder = f" (held by PID {holder_pid})" if holder_pid else ""
        super().__init__(
            f"Could not acquire session lock after {max_wait:g}s{holder}. "
            f"Another command may be running; remove {path} if it is stale."
        )


class MessageTimeoutError(SpecwatchError):
    """No response arrived from the supervisor within the timeout."""

    degraded = True

    def __init__(self, message_id: str, timeout: float):
        self.message_id = message_id
        self.timeout = timeout
        super().__init__(
            f"Supervisor did not answer message {message_id} within {timeout:g}s; "
            "continuing without observations"
        )


class DuplicateMessageError(SpecwatchError):
    """A message id is still in flight and cannot be reused."""

    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__(
            f"Message id {message_id!r} is already pending; "
            "reusing an id before its response is consumed is not allowed"
        )
