#!/usr/bin/env python3
"""Status output and the per-session log file.

Two sinks:

- StatusConsole: colored human-readable lines on stderr via rich. Stdout
  is reserved for data (``--list-audio``, ``--list-monitors``).
- SessionLog: an append-only plain-text file that receives a framed
  parameter block per session, the exact ffmpeg invocation, ffmpeg's own
  output, and the final status line.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import IO, Iterable, Optional, Sequence, Tuple

from rich.console import Console
from rich.text import Text
from rich.theme import Theme

THEME = Theme({
    "info": "bold cyan",
    "warning": "bold yellow",
    "error": "bold red",
    "success": "bold green",
    "rec": "bold red",
    "countdown": "bold yellow",
})

RULE = "═" * 60


class StatusConsole:
    """Colored status lines on stderr.

    Color is dropped automatically when stderr is not a terminal, so
    redirected output stays plain.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console(stderr=True, theme=THEME, highlight=False)

    def _tagged(self, tag: str, style: str, message: str) -> None:
        self.console.print(Text.assemble((f"[{tag}]", style), " ", message))

    def msg(self, message: str = "") -> None:
        self.console.print(Text(message))

    def info(self, message: str) -> None:
        self._tagged("INFO", "info", message)

    def warn(self, message: str) -> None:
        self._tagged("WARN", "warning", message)

    def error(self, message: str) -> None:
        self._tagged("ERROR", "error", message)

    def success(self, message: str) -> None:
        self._tagged(" OK ", "success", message)

    def banner(self, parts: Sequence[Tuple[str, str]]) -> None:
        """Print one line assembled from (text, style) pairs."""
        self.console.print(Text.assemble(*parts))


class SessionLog:
    """Append-only session log shared with the ffmpeg child."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _ensure_parent(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, lines: Iterable[str]) -> None:
        self._ensure_parent()
        with open(self.path, "a", encoding="utf-8") as f:
            for line in lines:
                f.write(f"{line}\n")

    def write_session_header(self, title: str, fields: Sequence[Tuple[str, str]]) -> None:
        """Write the framed parameter block that opens a session."""
        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        lines = [RULE, f"{stamp} — {title}"]
        lines.extend(f"{key}={value}" for key, value in fields)
        lines.append(RULE)
        self.append(lines)

    def write_status(self, status: str, detail: str = "") -> None:
        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        suffix = f"  {detail}" if detail else ""
        self.append([f"{stamp} STATUS={status}{suffix}"])

    def open_for_child(self) -> IO[bytes]:
        """Open the log for the child's stdout/stderr. Caller closes it."""
        self._ensure_parent()
        return open(self.path, "ab")
