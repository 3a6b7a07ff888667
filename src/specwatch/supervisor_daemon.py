#!/usr/bin/env python3
"""
Supervisor Daemon - background monitor for one project root.

Lifecycle: INITIALIZING -> RUNNING -> SHUTTING_DOWN -> TERMINATED.

Each tick (one heartbeat interval):
1. refresh the heartbeat and persist it (heartbeat file and state.json),
2. answer every message pending in the inbox,
3. run the delta scan when due,
4. run the full scan when due (it includes the delta scan),
5. sleep until the next tick, answering messages that arrive meanwhile.

The daemon is the only writer of its state document and observation log.
Callers read them, and talk to the daemon through the message channel.

Pure business logic is extracted to supervisor_daemon_core.py for testability.
"""

import os
import signal
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import SupervisorConfig, load_supervisor_config
from .daemon_logging import DaemonLogger
from .exceptions import RuntimeRootError
from .implementations import RealGit
from .liveness import remove_heartbeat, write_heartbeat
from .logging_config import setup_daemon_logging
from .message_channel import Message, MessageChannel
from .pid_utils import acquire_daemon_lock, read_pid, remove_pid_file
from .protocols import VcsInterface
from .scanner import Scanner
from .settings import SupervisorPaths, get_project_root
from .status_constants import (
    PHASE_INITIALIZING,
    PHASE_RUNNING,
    PHASE_SHUTTING_DOWN,
    PHASE_TERMINATED,
)
from .supervisor_daemon_core import (
    SCAN_DELTA,
    SCAN_FULL,
    advance_phase,
    build_status_result,
    plan_scan,
    seconds_until,
)
from .supervisor_state import (
    Observation,
    SupervisorState,
    append_observation_log,
    utcnow,
)


EXIT_OK = 0
EXIT_RUNTIME_ROOT = 2

# Uncollected responses older than this are removed
STALE_RESPONSE_AGE = 300

# Granularity of the sleep between ticks (shutdown and inbox checks)
SLEEP_CHUNK = 0.5


class SupervisorDaemon:
    """The daemon's main loop and its state machine."""

    def __init__(
        self,
        root: Path,
        vcs: Optional[VcsInterface] = None,
        verbose: bool = False,
        logger: Optional[DaemonLogger] = None,
    ):
        self.root = Path(root)
        self.paths = SupervisorPaths(self.root)
        self.verbose = verbose
        self.log = logger or DaemonLogger(self.paths.debug_log, verbose=verbose)

        # Dependencies (allow injection for testing)
        self.vcs = vcs or RealGit(self.root)
        self.scanner = Scanner(self.root, self.vcs)
        self.channel = MessageChannel.for_paths(self.paths, use_events=False)

        self.config: SupervisorConfig = SupervisorConfig()
        self.state: SupervisorState = SupervisorState()
        self.phase = PHASE_INITIALIZING
        self.tick_count = 0
        self._shutdown = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _set_phase(self, target: str) -> None:
        self.phase = advance_phase(self.phase, target)
        self.state.phase = self.phase
        self.log.debug(f"Phase -> {self.phase}")

    def prepare_runtime_root(self) -> None:
        """Create the runtime directories.

        Raises:
            RuntimeRootError: if they cannot be created
        """
        try:
            self.paths.ensure()
        except OSError as e:
            raise RuntimeRootError(f"Cannot create runtime root {self.paths.base}: {e}") from e

    def initialize(self, now: Optional[datetime] = None) -> None:
        """Load config and state, write the first heartbeat, enter RUNNING."""
        now = now or utcnow()
        try:
            self.config = load_supervisor_config(self.paths.config_file, create=True)
        except OSError as e:
            self.log.warn(f"Could not write default config ({e}); using defaults")
            self.config = SupervisorConfig()

        existing = SupervisorState.load(self.paths.state_file)
        if existing is not None:
            self.log.info(
                f"Resuming from previous state ({len(existing.observations)} observations)"
            )
            self.state = existing
        self.state.pid = os.getpid()
        self.state.started_at = now
        self.state.phase = self.phase

        self.state.beat(now)
        self._set_phase(PHASE_RUNNING)
        self._persist_heartbeat()

    def request_shutdown(self, signum=None, frame=None) -> None:
        """Signal handler: finish the current tick, then stop."""
        self.log.info("Shutdown signal received")
        self._shutdown = True

    def shutdown(self) -> None:
        """Remove the identity record and move to TERMINATED."""
        if self.phase in (PHASE_SHUTTING_DOWN, PHASE_TERMINATED):
            return
        self._set_phase(PHASE_SHUTTING_DOWN)
        self.log.info("Supervisor shutting down gracefully")

        if read_pid(self.paths.pid_file) == os.getpid():
            remove_pid_file(self.paths.pid_file)
            # A successor must not inherit this process's last beat
            remove_heartbeat(self.paths.heartbeat_file)

        self._set_phase(PHASE_TERMINATED)
        self._save_state()

    # =========================================================================
    # Persistence
    # =========================================================================

    def _save_state(self) -> bool:
        try:
            self.state.save(self.paths.state_file)
            return True
        except OSError as e:
            self.log.error(f"Could not persist state (continuing): {e}")
            return False

    def _persist_heartbeat(self) -> None:
        """Write the heartbeat file, then the state document.

        The two writes are independent: liveness depends only on the
        heartbeat file, so a failing state write must not block it.
        """
        beat = self.state.last_heartbeat or utcnow()
        try:
            write_heartbeat(self.paths.heartbeat_file, beat.timestamp())
        except OSError as e:
            self.log.error(f"Could not write heartbeat (continuing): {e}")
        self._save_state()

    def record(self, observations: List[Observation]) -> None:
        """Add observations to state and the append-only log."""
        for observation in observations:
            self.state.record_observation(observation, self.config.max_observations)
            try:
                append_observation_log(self.paths.observation_log, observation)
            except OSError as e:
                self.log.error(f"Could not append to observation log: {e}")
            self.log.debug(f"[{observation.severity}] {observation.type}: {observation.message}")

    # =========================================================================
    # Tick
    # =========================================================================

    def answer(self, message_id: str, message: Optional[Message]) -> dict:
        """Answer any message with the current status snapshot.

        The declared message type is logged but not dispatched on.
        """
        if message is None:
            self.log.warn(f"Message {message_id} could not be parsed; answering anyway")
        else:
            self.log.debug(f"Answering {message.type!r} message {message_id}")
        self.state.mark_processed(message_id)
        return build_status_result(len(self.state.observations))

    def answer_pending(self) -> List[str]:
        """Drain the inbox, persisting state if anything was answered."""
        answered = self.channel.drain(self.answer)
        if answered:
            self._save_state()
        return answered

    def tick(self, now: Optional[datetime] = None) -> Optional[str]:
        """Run one loop iteration.

        Returns:
            The scan that ran (SCAN_FULL, SCAN_DELTA) or None
        """
        now = now or utcnow()
        self.tick_count += 1

        self.state.beat(now)
        self._persist_heartbeat()

        answered = self.channel.drain(self.answer)
        self.channel.prune_stale_responses(STALE_RESPONSE_AGE)

        scan = plan_scan(self.state, now, self.config)
        if scan == SCAN_FULL:
            self.log.debug("Performing full scan...")
            self.record(self.scanner.full_scan(self.state, now))
        elif scan == SCAN_DELTA:
            self.log.debug("Performing delta scan...")
            self.record(self.scanner.delta_scan(self.state, now))

        if answered or scan:
            self._save_state()

        self.log.tick_summary(self.tick_count, len(answered), len(self.state.observations), scan)
        return scan

    def _interruptible_sleep(self, total_seconds: float) -> None:
        """Sleep in short chunks so a shutdown signal is noticed promptly.

        Messages arriving mid-sleep are answered at the next chunk rather
        than waiting a whole heartbeat interval.
        """
        deadline = time.monotonic() + total_seconds
        while not self._shutdown:
            remaining = seconds_until(deadline, time.monotonic())
            if remaining <= 0:
                return
            time.sleep(min(SLEEP_CHUNK, remaining))
            if not self._shutdown and self.channel.pending_message_ids():
                self.answer_pending()

    def run(self) -> int:
        """Main daemon loop.

        Returns:
            Process exit code
        """
        try:
            self.prepare_runtime_root()
        except RuntimeRootError as e:
            self.log.error(str(e))
            return EXIT_RUNTIME_ROOT

        # Atomically claim the identity marker; a live owner means we are redundant
        acquired, existing_pid = acquire_daemon_lock(self.paths.pid_file)
        if not acquired:
            self.log.warn(f"Supervisor already running (PID {existing_pid}); exiting")
            return EXIT_OK

        self.log.section(f"Supervisor Daemon v{__version__}")
        self.log.success(f"Supervisor daemon starting (PID: {os.getpid()})")
        self.log.info(f"Project root: {self.root}")
        self.log.debug("Verbose mode enabled - detailed logging active")

        signal.signal(signal.SIGTERM, self.request_shutdown)
        signal.signal(signal.SIGINT, self.request_shutdown)

        try:
            self.initialize()
            self.log.info(
                f"Intervals: heartbeat={self.config.heartbeat_interval}s, "
                f"delta={self.config.delta_scan_interval}s, full={self.config.full_scan_interval}s"
            )
            while not self._shutdown:
                started = time.monotonic()
                self.tick()
                self._interruptible_sleep(
                    seconds_until(started + self.config.heartbeat_interval, time.monotonic())
                )
        except Exception as e:
            self.log.error(f"Supervisor daemon error: {e}")
            raise
        finally:
            self.shutdown()

        return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint for the supervisor daemon."""
    import argparse

    parser = argparse.ArgumentParser(description="Specwatch Supervisor Daemon")
    parser.add_argument(
        "--root", "-r",
        default=None,
        help="Project root (default: git toplevel of the current directory)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Write detailed debug logging to debug.log"
    )

    args = parser.parse_args(argv)
    root = Path(args.root) if args.root else get_project_root()

    daemon = SupervisorDaemon(root, verbose=args.verbose)
    setup_daemon_logging(daemon.paths.debug_log, verbose=args.verbose)
    return daemon.run()


if __name__ == "__main__":
    sys.exit(main())
