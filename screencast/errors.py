#!/usr/bin/env python3
"""Exception hierarchy for screencast.

Every failure the core can report derives from ScreencastError and
carries the process exit code the CLI should return for it:

    Configuration errors  -> EXIT_USAGE (2), raised before anything is touched
    Environment errors    -> EXIT_FAILURE (1), raised before ffmpeg starts
    Geometry errors       -> EXIT_FAILURE (1)
    SelectionCancelled    -> EXIT_OK (0), the operator backed out

Missing or tiny output files are not exceptions; the supervisor reports
them as session states after the encoder has finished.
"""

from __future__ import annotations

from screencast.types import EXIT_FAILURE, EXIT_OK, EXIT_USAGE


class ScreencastError(Exception):
    """Base class for all screencast failures."""

    exit_code: int = EXIT_FAILURE


# ============================================================================
# CONFIGURATION
# ============================================================================


class ConfigurationError(ScreencastError):
    """Conflicting or malformed command-line input."""

    exit_code = EXIT_USAGE


class OutOfRange(ConfigurationError):
    """A requested size or margin is outside the accepted range."""


# ============================================================================
# ENVIRONMENT
# ============================================================================


class ToolMissing(ScreencastError):
    """A required external program is not installed."""


class AudioToolMissing(ToolMissing):
    """Neither pactl nor arecord is available for microphone capture."""


class GeometryUnavailable(ScreencastError):
    """No geometry provider could report the screen size."""

    def __init__(self, message: str = "Cannot detect screen size. "
                 "Install xrandr, xwininfo, or xdpyinfo.") -> None:
        super().__init__(message)


class InvalidToolOutput(ScreencastError):
    """An interactive tool printed something that is not a geometry."""


class NoInteractiveTerminal(ScreencastError):
    """A device choice is needed but stdin is not a terminal."""


class NoAudioDevices(ScreencastError):
    """Microphone capture was requested but no capture source exists."""


# ============================================================================
# GEOMETRY
# ============================================================================


class WindowOffScreen(ScreencastError):
    """The clicked window has no visible area after clamping."""


class ResolutionExceedsMonitor(ScreencastError):
    """The requested fixed resolution does not fit the primary monitor."""


class CropTooAggressive(ScreencastError):
    """Crop margins leave less than the minimum capture size."""


class RegionTooSmall(ScreencastError):
    """An interactively selected area is below the minimum capture size."""


class InvalidGeometry(ScreencastError):
    """A resolved rectangle violates the encoder's size/parity invariants."""


# ============================================================================
# NORMAL EXITS
# ============================================================================


class SelectionCancelled(ScreencastError):
    """The operator cancelled an interactive selection."""

    exit_code = EXIT_OK
