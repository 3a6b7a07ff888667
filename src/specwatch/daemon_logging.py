"""
Rich console logger for the supervisor daemon.

Console output goes to stderr, which the process supervisor redirects to
supervisor.log. In verbose mode every line (including debug) is mirrored
as plain text into the debug log.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.text import Text
from rich.theme import Theme


DAEMON_THEME = Theme({
    "info": "cyan",
    "warn": "yellow",
    "error": "bold red",
    "success": "bold green",
    "debug": "dim cyan",
    "dim": "dim white",
    "highlight": "bold white",
})


class DaemonLogger:
    """Rich-based logger with an optional plain-text file mirror."""

    def __init__(
        self,
        log_file: Optional[Path] = None,
        verbose: bool = False,
        theme: Optional[Theme] = None,
        console: Optional[Console] = None,
    ):
        self.verbose = verbose
        self.log_file = log_file if verbose else None
        if self.log_file is not None:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
        self.console = console or Console(theme=theme or DAEMON_THEME, stderr=True)

    def _write_to_file(self, message: str, level: str) -> None:
        if self.log_file is None:
            return
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        try:
            with open(self.log_file, "a") as f:
                f.write(f"[{timestamp}] [{level}] {message}\n")
        except OSError:
            pass

    def _log(self, style: str, tag: str, message: str, level: str) -> None:
        self._write_to_file(message, level)
        now = datetime.now().strftime("%H:%M:%S")
        self.console.print(f"[dim]{now}[/dim] [{style}]{tag:<5}[/{style}] {message}", highlight=False)

    def info(self, message: str) -> None:
        self._log("info", "INFO", message, "INFO")

    def warn(self, message: str) -> None:
        self._log("warn", "WARN", message, "WARN")

    def error(self, message: str) -> None:
        self._log("error", "ERROR", message, "ERROR")

    def success(self, message: str) -> None:
        self._log("success", "OK", message, "INFO")

    def debug(self, message: str) -> None:
        """Debug lines appear only in verbose mode."""
        if not self.verbose:
            return
        self._log("debug", "DEBUG", message, "DEBUG")

    def section(self, title: str) -> None:
        """Print a section divider."""
        self._write_to_file(f"=== {title} ===", "INFO")
        self.console.print()
        self.console.rule(f"[bold]{title}[/bold]", style="dim")

    def tick_summary(self, tick: int, pending: int, observations: int, scan: Optional[str]) -> None:
        """One line per tick: messages answered, observation count, scan run."""
        text = Text()
        text.append(f"Tick #{tick}: ", style="dim")
        text.append(f"{pending} message(s) answered", style="highlight" if pending else "dim")
        text.append(", ", style="dim")
        text.append(f"{observations} observation(s)", style="warn" if observations else "dim")
        if scan:
            text.append(f", {scan} scan", style="info")

        plain = text.plain
        self._write_to_file(plain, "INFO")
        self.console.print(f"[dim]{datetime.now().strftime('%H:%M:%S')}[/dim] ", end="")
        self.console.print(text)
