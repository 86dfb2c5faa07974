#!/usr/bin/env python3
"""Shared types and constants for the screencast package.

Everything that crosses a module boundary lives here: the capture
rectangle, the primary monitor record, the capture mode variants, audio
descriptors and the immutable recording configuration handed from the
CLI to the core.

Constants:
    __version__: Package version string
    PROG_NAME: Program name used in file names and the session log
    MIN_CAPTURE_DIM: Smallest width/height accepted for a capture area
    MAX_REQUEST_WIDTH, MAX_REQUEST_HEIGHT: 8K ceiling for fixed resolution
    SMALL_OUTPUT_BYTES: Output size at or below which a recording is suspect
    KILL_GRACE_SECONDS, KILL_POLL_SECONDS: Forced-cleanup timing
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

# ============================================================================
# VERSION AND METADATA
# ============================================================================

__version__ = "2.5.0"

PROG_NAME: str = "screencast"
PROG_DESC: str = "Professional X11 Screen Recorder"

# ============================================================================
# GEOMETRY LIMITS
# ============================================================================

MIN_CAPTURE_DIM: int = 16
MAX_REQUEST_WIDTH: int = 7680
MAX_REQUEST_HEIGHT: int = 4320

# ============================================================================
# SESSION SUPERVISION
# ============================================================================

SMALL_OUTPUT_BYTES: int = 4096
KILL_GRACE_SECONDS: float = 7.0
KILL_POLL_SECONDS: float = 0.1
DEFAULT_COUNTDOWN: int = 3

# ============================================================================
# GEOMETRY RECORDS
# ============================================================================


@dataclass(frozen=True)
class Rectangle:
    """Capture area in virtual-screen coordinates."""

    x: int
    y: int
    w: int
    h: int

    @property
    def size(self) -> str:
        return f"{self.w}x{self.h}"

    def __str__(self) -> str:
        return f"{self.w}×{self.h} at +{self.x},+{self.y}"


@dataclass(frozen=True)
class MonitorInfo:
    """Placement of the primary monitor within the virtual screen."""

    x: int
    y: int
    w: int
    h: int
    name: str = "screen"


# ============================================================================
# CAPTURE MODES
# ============================================================================


@dataclass(frozen=True)
class Fullscreen:
    """Record the whole virtual screen."""

    @property
    def tag(self) -> str:
        return "full"


@dataclass(frozen=True)
class RegionSelect:
    """Record an area dragged out with the mouse."""

    @property
    def tag(self) -> str:
        return "select"


@dataclass(frozen=True)
class WindowClick:
    """Record the window the operator clicks on."""

    @property
    def tag(self) -> str:
        return "window"


@dataclass(frozen=True)
class FixedResolution:
    """Record a WxH area centered on the primary monitor."""

    w: int
    h: int

    @property
    def tag(self) -> str:
        return f"{self.w}x{self.h}"


@dataclass(frozen=True)
class Crop:
    """Record the primary monitor minus per-edge margins."""

    left: int
    right: int
    top: int
    bottom: int

    @property
    def tag(self) -> str:
        return "crop"


CaptureMode = Union[Fullscreen, RegionSelect, WindowClick, FixedResolution, Crop]

# ============================================================================
# AUDIO
# ============================================================================

AUDIO_SYSTEM = "system"
AUDIO_MICROPHONE = "microphone"


@dataclass(frozen=True)
class AudioDescriptor:
    """One audio input for the encoder.

    ``backend`` is the ffmpeg input format (``pulse`` or ``alsa``).
    System audio is captured in stereo, microphones in mono.
    """

    kind: str
    device_id: str
    label: str
    backend: str = "pulse"

    @property
    def channels(self) -> int:
        return 2 if self.kind == AUDIO_SYSTEM else 1

    def __str__(self) -> str:
        short = "system" if self.kind == AUDIO_SYSTEM else "mic"
        return f"{short}({self.device_id})"


# ============================================================================
# CONFIGURATION
# ============================================================================


@dataclass(frozen=True)
class RecordConfig:
    """Validated configuration consumed by the region resolver and supervisor."""

    mode: CaptureMode
    profile: str
    log_path: Path
    output_path: Optional[Path] = None
    system_audio: bool = False
    mic_audio: bool = False
    mute: bool = False
    countdown: int = DEFAULT_COUNTDOWN
    display_name: str = ":0"

    @property
    def wants_system_audio(self) -> bool:
        return self.system_audio and not self.mute

    @property
    def wants_mic_audio(self) -> bool:
        return self.mic_audio and not self.mute


# ============================================================================
# SESSION STATE
# ============================================================================


class SessionState(enum.Enum):
    IDLE = "idle"
    BUILDING = "building"
    COUNTING_DOWN = "counting-down"
    RUNNING = "running"
    FINALIZING = "finalizing"
    SUCCEEDED = "succeeded"
    SMALL_OUTPUT = "small-output"
    NO_OUTPUT = "no-output"


TERMINAL_STATES = frozenset(
    {SessionState.SUCCEEDED, SessionState.SMALL_OUTPUT, SessionState.NO_OUTPUT}
)

# Exit codes seen by the shell
EXIT_OK: int = 0
EXIT_FAILURE: int = 1
EXIT_USAGE: int = 2
EXIT_WARNING: int = 3
EXIT_INTERRUPTED: int = 130
