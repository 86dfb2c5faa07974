#!/usr/bin/env python3
"""screencast - X11 screen recorder driving ffmpeg.

Resolves a capture rectangle from one of five modes (fullscreen, drag
selection, window click, centered fixed resolution, monitor crop), picks
audio inputs, and supervises an ffmpeg x11grab/libx264/aac child until
the MP4 is finalized.

Public API:
    # Region resolution
    RegionResolver(display, console, selector, picker).resolve(mode) -> Rectangle
    clamp_to_screen(raw, screen_w, screen_h) -> Rectangle
    resolve_fixed_resolution(w, h, monitor) -> Rectangle
    resolve_crop(left, right, top, bottom, monitor) -> Rectangle

    # Session supervision
    build_command(rect, profile, audio, output, display_name) -> List[str]
    Supervisor(config, console).run(rect, profile, audio) -> SessionResult

    # Geometry, audio, profiles
    Display, AudioResolver, get_profile, PROFILES

Usage as CLI:
    ```bash
    python -m screencast -f -q1 -a
    screencast -r 1280x720 -q2
    ```
"""

from __future__ import annotations

from screencast.types import (
    __version__,
    AudioDescriptor,
    Crop,
    FixedResolution,
    Fullscreen,
    MonitorInfo,
    RecordConfig,
    Rectangle,
    RegionSelect,
    SessionState,
    WindowClick,
)

from screencast.errors import ScreencastError

from screencast.profiles import PROFILES, QualityProfile, get_profile

from screencast.geometry import Display

from screencast.regions import (
    RegionResolver,
    clamp_to_screen,
    resolve_crop,
    resolve_fixed_resolution,
    validate_rectangle,
)

from screencast.audio import AudioResolver

from screencast.session import SessionResult, Supervisor, build_command

from screencast.cli import main

__all__ = [
    "__version__",
    # Types
    "AudioDescriptor",
    "Crop",
    "FixedResolution",
    "Fullscreen",
    "MonitorInfo",
    "RecordConfig",
    "Rectangle",
    "RegionSelect",
    "SessionState",
    "WindowClick",
    "ScreencastError",
    # Profiles
    "PROFILES",
    "QualityProfile",
    "get_profile",
    # Geometry and regions
    "Display",
    "RegionResolver",
    "clamp_to_screen",
    "resolve_crop",
    "resolve_fixed_resolution",
    "validate_rectangle",
    # Audio and session
    "AudioResolver",
    "SessionResult",
    "Supervisor",
    "build_command",
    # CLI
    "main",
]
