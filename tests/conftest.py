"""Shared pytest fixtures for screencast tests.

Nothing here touches a real display, sound server or ffmpeg: geometry,
interactive tools and the encoder process are all fakes.
"""

import io
import signal
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional

import pytest
from rich.console import Console

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from screencast.logger import THEME, SessionLog, StatusConsole
from screencast.tools import WindowGeometry
from screencast.types import Fullscreen, MonitorInfo, RecordConfig, Rectangle


class FakeDisplay:
    """Display stand-in returning canned geometry."""

    def __init__(
        self,
        screen: Optional[Rectangle] = Rectangle(0, 0, 1920, 1080),
        monitor: Optional[MonitorInfo] = MonitorInfo(0, 0, 1920, 1080, "DP-1"),
    ) -> None:
        self.screen = screen
        self.monitor = monitor
        self.calls: List[str] = []

    def virtual_screen(self) -> Optional[Rectangle]:
        self.calls.append("virtual_screen")
        return self.screen

    def primary_monitor(self) -> Optional[MonitorInfo]:
        self.calls.append("primary_monitor")
        return self.monitor

    def monitors(self) -> List[MonitorInfo]:
        return [self.monitor] if self.monitor else []


class FakeSelector:
    """Area selector returning a fixed raw string."""

    def __init__(self, raw: str) -> None:
        self.raw = raw

    def select(self) -> str:
        return self.raw


class FakePicker:
    """Window picker returning a fixed geometry (None means cancelled)."""

    def __init__(self, geometry: Optional[WindowGeometry]) -> None:
        self.geometry = geometry

    def pick(self) -> Optional[WindowGeometry]:
        return self.geometry


class FakeProcess:
    """Popen stand-in for the ffmpeg child.

    Args:
        exits_on_interrupt: Whether SIGINT makes the process exit.
        on_wait: Called on the first wait() while alive; may write output.
        exit_on_wait: Whether wait() lets the process exit by itself.
    """

    def __init__(
        self,
        exits_on_interrupt: bool = True,
        on_wait: Optional[Callable[["FakeProcess"], Any]] = None,
        exit_on_wait: bool = True,
    ) -> None:
        self.pid = 4242
        self.returncode: Optional[int] = None
        self.exits_on_interrupt = exits_on_interrupt
        self.on_wait = on_wait
        self.exit_on_wait = exit_on_wait
        self.signals: List[int] = []
        self.killed = 0
        self.waits = 0

    def poll(self) -> Optional[int]:
        return self.returncode

    def send_signal(self, sig: int) -> None:
        self.signals.append(sig)
        if sig == signal.SIGINT and self.exits_on_interrupt and self.returncode is None:
            self.returncode = 255

    def kill(self) -> None:
        self.killed += 1
        if self.returncode is None:
            self.returncode = -9

    def wait(self, timeout: Optional[float] = None) -> int:
        self.waits += 1
        if self.returncode is None and self.on_wait is not None:
            callback, self.on_wait = self.on_wait, None
            callback(self)
        if self.returncode is None and self.exit_on_wait:
            self.returncode = 0
        return self.returncode if self.returncode is not None else 0


@pytest.fixture
def console() -> StatusConsole:
    """Status console writing plain text into a buffer."""
    return StatusConsole(
        Console(file=io.StringIO(), theme=THEME, width=200, force_terminal=False, highlight=False)
    )


def console_text(console: StatusConsole) -> str:
    return console.console.file.getvalue()


@pytest.fixture
def display() -> FakeDisplay:
    return FakeDisplay()


@pytest.fixture
def session_log(tmp_path: Path) -> SessionLog:
    return SessionLog(tmp_path / "logs" / "screencast.log")


@pytest.fixture
def record_config(tmp_path: Path) -> RecordConfig:
    return RecordConfig(
        mode=Fullscreen(),
        profile="light",
        log_path=tmp_path / "logs" / "screencast.log",
        output_path=tmp_path / "out" / "capture.mp4",
        countdown=0,
        display_name=":0",
    )
