"""
File-based request/response channel between callers and the daemon.

A caller drops `inbox/<id>.json` and waits for `outbox/<id>.json`. Both
files are created atomically (written to a temp file, then hard-linked into
place), so a reader never sees a partial document and an id that is still
in flight can never be silently overwritten.

Waiting is woken by filesystem events (watchdog) and falls back to fixed
interval polling, so the wait is always bounded by the timeout even when
events are unavailable.

Lifecycle of one id:
    caller   send()            -> inbox/<id>.json
    daemon   drain()           -> outbox/<id>.json, inbox file removed
    caller   consume()         -> both removed
"""

import json
import os
import re
import tempfile
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .exceptions import DuplicateMessageError, MessageTimeoutError
from .logging_config import get_logger
from .settings import DAEMON, SupervisorPaths
from .supervisor_state import parse_timestamp, utcnow


log = get_logger("channel")

RESPONSE_TYPE = "response"
MESSAGE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")


def new_message_id() -> str:
    """Globally unique message id (safe across concurrent callers)."""
    return f"msg-{uuid.uuid4().hex}"


def validate_message_id(message_id: str) -> str:
    if not isinstance(message_id, str) or not MESSAGE_ID_PATTERN.match(message_id):
        raise ValueError(f"Invalid message id: {message_id!r}")
    return message_id


@dataclass
class Message:
    """A request from a caller to the daemon."""

    type: str
    payload: Any = None
    id: str = field(default_factory=new_message_id)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "created_at": self.created_at.isoformat(),
            "payload": self.payload,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            id=str(data["id"]),
            type=str(data.get("type", "")),
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
            payload=data.get("payload"),
        )


@dataclass
class Response:
    """The daemon's answer to one message."""

    id: str
    result: Dict[str, Any]
    created_at: datetime = field(default_factory=utcnow)
    type: str = RESPONSE_TYPE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": RESPONSE_TYPE,
            "created_at": self.created_at.isoformat(),
            "result": self.result,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Response":
        return cls(
            id=str(data["id"]),
            result=data.get("result") or {},
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
        )


def _create_exclusive(path: Path, data: dict) -> bool:
    """Atomically create path with JSON content.

    Returns False (and leaves the existing file untouched) if path exists.
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
        try:
            os.link(tmp_name, path)
        except FileExistsError:
            return False
        return True
    finally:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass


def _read_json(path: Path) -> Optional[dict]:
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None


def _unlink(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


class _ArrivalHandler(FileSystemEventHandler):
    """Sets an event when a file with the target name appears."""

    def __init__(self, target: Path, arrived: threading.Event):
        self.target_name = target.name
        self.arrived = arrived

    def _check(self, path) -> None:
        if Path(os.fsdecode(path)).name == self.target_name:
            self.arrived.set()

    def on_created(self, event) -> None:
        self._check(event.src_path)

    def on_moved(self, event) -> None:
        self._check(event.dest_path)


class MessageChannel:
    """Inbox/outbox transport for one supervisor runtime root."""

    def __init__(
        self,
        inbox_dir: Path,
        outbox_dir: Path,
        poll_interval: float = DAEMON.message_poll_interval,
        use_events: bool = True,
    ):
        self.inbox_dir = Path(inbox_dir)
        self.outbox_dir = Path(outbox_dir)
        self.poll_interval = poll_interval
        self.use_events = use_events

    @classmethod
    def for_paths(cls, paths: SupervisorPaths, **kwargs) -> "MessageChannel":
        return cls(paths.inbox_dir, paths.outbox_dir, **kwargs)

    def message_path(self, message_id: str) -> Path:
        return self.inbox_dir / f"{validate_message_id(message_id)}.json"

    def response_path(self, message_id: str) -> Path:
        return self.outbox_dir / f"{validate_message_id(message_id)}.json"

    def _ensure_dirs(self) -> None:
        self.inbox_dir.mkdir(parents=True, exist_ok=True)
        self.outbox_dir.mkdir(parents=True, exist_ok=True)

    # =========================================================================
    # Caller side
    # =========================================================================

    def send(self, message: Message) -> Path:
        """Deposit a message in the inbox.

        Raises:
            DuplicateMessageError: if the id is still pending or answered
                but not yet consumed
        """
        self._ensure_dirs()
        path = self.message_path(message.id)
        if self.response_path(message.id).exists():
            raise DuplicateMessageError(message.id)
        if not _create_exclusive(path, message.to_dict()):
            raise DuplicateMessageError(message.id)
        log.debug(f"Sent {message.type} message {message.id}")
        return path

    def wait_for_response(self, message_id: str, timeout: float) -> Optional[Response]:
        """Block until the response for message_id exists or timeout elapses."""
        path = self.response_path(message_id)
        deadline = time.monotonic() + timeout
        arrived = threading.Event()
        observer = self._watch(path, arrived) if self.use_events else None

        try:
            while True:
                if path.exists():
                    data = _read_json(path)
                    if data is not None:
                        return Response.from_dict(data)
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                arrived.wait(min(self.poll_interval, remaining))
                arrived.clear()
        finally:
            if observer is not None:
                observer.stop()
                observer.join(timeout=1.0)

    def _watch(self, path: Path, arrived: threading.Event):
        """Start a watchdog observer on the outbox, None if unavailable."""
        try:
            self._ensure_dirs()
            observer = Observer()
            observer.schedule(_ArrivalHandler(path, arrived), str(self.outbox_dir), recursive=False)
            observer.start()
        except (OSError, RuntimeError) as e:
            log.debug(f"File events unavailable ({e}); polling instead")
            return None
        return observer

    def consume(self, message_id: str) -> Optional[Response]:
        """Read the response, then delete both message and response."""
        data = _read_json(self.response_path(message_id))
        self.discard(message_id)
        return Response.from_dict(data) if data is not None else None

    def discard(self, message_id: str) -> None:
        """Remove any files for message_id from both sides."""
        _unlink(self.message_path(message_id))
        _unlink(self.response_path(message_id))

    def request(
        self,
        msg_type: str,
        payload: Any = None,
        timeout: float = DAEMON.message_timeout,
        message_id: Optional[str] = None,
    ) -> Response:
        """Send a message and wait for its response.

        Raises:
            DuplicateMessageError: if message_id is already in flight
            MessageTimeoutError: if no response arrives within timeout
        """
        message = Message(type=msg_type, payload=payload)
        if message_id is not None:
            message.id = validate_message_id(message_id)

        self.send(message)
        response = self.wait_for_response(message.id, timeout)
        if response is None:
            self.discard(message.id)
            raise MessageTimeoutError(message.id, timeout)

        self.consume(message.id)
        return response

    # =========================================================================
    # Daemon side
    # =========================================================================

    def pending_message_ids(self) -> List[str]:
        """Ids of messages in the inbox right now (a snapshot, oldest first)."""
        try:
            entries = [p for p in self.inbox_dir.glob("*.json") if not p.name.startswith(".")]
        except OSError:
            return []
        ids = []
        for p in entries:
            if not MESSAGE_ID_PATTERN.match(p.stem):
                log.warning(f"Ignoring inbox file with invalid id: {p.name}")
                continue
            try:
                ids.append((p.stat().st_mtime, p.stem))
            except OSError:
                continue
        return [message_id for _, message_id in sorted(ids)]

    def read_message(self, message_id: str) -> Optional[Message]:
        data = _read_json(self.message_path(message_id))
        if data is None or "id" not in data:
            return None
        return Message.from_dict(data)

    def respond(self, message_id: str, result: Dict[str, Any]) -> bool:
        """Write the response for message_id.

        Returns False if a response already exists (exactly one per id).
        """
        self._ensure_dirs()
        response = Response(id=message_id, result=result)
        return _create_exclusive(self.response_path(message_id), response.to_dict())

    def drain(self, handler: Callable[[str, Optional[Message]], Dict[str, Any]]) -> List[str]:
        """Answer every message pending at call time and remove it.

        handler receives the id and the parsed message (None if the file
        could not be parsed) and returns the response result.

        Returns:
            Ids answered in this drain.
        """
        answered = []
        for message_id in self.pending_message_ids():
            message = self.read_message(message_id)
            try:
                result = handler(message_id, message)
                if not self.respond(message_id, result):
                    log.warning(f"Response for {message_id} already exists; not overwritten")
                _unlink(self.message_path(message_id))
            except OSError as e:
                log.error(f"Could not answer message {message_id}: {e}")
                continue
            answered.append(message_id)
        return answered

    def prune_stale_responses(self, max_age: float, now: Optional[float] = None) -> int:
        """Remove responses nobody collected (caller timed out or crashed)."""
        now = now if now is not None else time.time()
        removed = 0
        try:
            entries = list(self.outbox_dir.glob("*.json"))
        except OSError:
            return 0
        for path in entries:
            try:
                if now - path.stat().st_mtime > max_age:
                    path.unlink()
                    removed += 1
            except OSError:
                continue
        return removed


def query_supervisor(
    paths: SupervisorPaths,
    msg_type: str = "status",
    payload: Any = None,
    timeout: float = DAEMON.message_timeout,
) -> Optional[Dict[str, Any]]:
    """Ask the daemon for a status snapshot.

    Returns the response result, or None in degraded mode (timeout).
    """
    channel = MessageChannel.for_paths(paths)
    try:
        return channel.request(msg_type, payload, timeout=timeout).result
    except MessageTimeoutError as e:
        log.warning(str(e))
        return None
