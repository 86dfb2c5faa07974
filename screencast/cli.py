#!/usr/bin/env python3
"""Command-line interface for screencast.

Parses arguments into an immutable RecordConfig, checks that the external
programs the chosen mode needs are installed, then runs the core:
region resolution, audio resolution, and the supervised ffmpeg session.

Exit codes:
    0  recording saved (or the operator cancelled a selection)
    1  hard failure (missing tool, no screen geometry, invalid area)
    2  usage error (conflicting or malformed arguments)
    3  recording finished but the output is missing or suspiciously small
    130 interrupted before recording started
"""

from __future__ import annotations

import argparse
import shutil
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from screencast.audio import AudioResolver, check_audio_tools, list_audio_sources
from screencast.config import Settings, output_path_for
from screencast.errors import (
    ConfigurationError,
    ScreencastError,
    SelectionCancelled,
    ToolMissing,
)
from screencast.geometry import Display
from screencast.logger import StatusConsole
from screencast.profiles import PROFILES, get_profile
from screencast.regions import (
    RegionResolver,
    parse_crop,
    parse_resolution,
    validate_requested_size,
)
from screencast.session import Supervisor
from screencast.tools import default_picker, default_selector
from screencast.types import (
    DEFAULT_COUNTDOWN,
    EXIT_INTERRUPTED,
    EXIT_OK,
    PROG_DESC,
    PROG_NAME,
    CaptureMode,
    FixedResolution,
    Fullscreen,
    RecordConfig,
    RegionSelect,
    WindowClick,
    __version__,
)

EPILOG = f"""
Stop recording:
  Press Ctrl+C in the terminal or send SIGINT/SIGTERM/SIGHUP/SIGQUIT.

Examples:
  {PROG_NAME} -f -q1 -a              # Fullscreen, professional quality, system audio
  {PROG_NAME} -w -q1 -a              # Click a window, professional, system audio
  {PROG_NAME} -s -q2                 # Select area, light quality, no audio
  {PROG_NAME} -r 1280x720 -q1 -a     # Centered 720p on the primary monitor
  {PROG_NAME} -c 0,0,32,0 -q2        # Primary monitor minus a 32px top panel
  {PROG_NAME} -s -q1 -a -v           # Select, professional, system + mic
  {PROG_NAME} -f -q2 -m              # Fullscreen, light, mute

Environment:
  SCREENCAST_OUTDIR    Output directory  (default: ~/Videos)
  SCREENCAST_LOG       Log file path     (default: $XDG_RUNTIME_DIR/{PROG_NAME}.log)
  DISPLAY              X11 display       (default: :0)

Notes:
  -w captures the clicked window including WM decorations. A window partly
  off-screen is clamped to the visible area.
  -r and -c work on the primary monitor. The area must fit on it.
  Output is always H.264 High + AAC-LC MP4, yuv420p, +faststart, closed GOP,
  BT.709 color tags, even dimensions.
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG_NAME,
        description=f"{PROG_DESC} (ffmpeg x11grab + libx264 + aac)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("-f", "--fullscreen", action="store_true",
                      help="Record the entire screen")
    mode.add_argument("-s", "--select", action="store_true",
                      help="Select a region with the mouse (slop, or pynput)")
    mode.add_argument("-w", "--window", action="store_true",
                      help="Click a window to record it (xwininfo, or xdotool)")
    mode.add_argument("-r", "--resolution", metavar="WxH",
                      help="Record a WxH area centered on the primary monitor")
    mode.add_argument("-c", "--crop", metavar="L,R,T,B",
                      help="Record the primary monitor minus edge margins in pixels")

    quality = parser.add_mutually_exclusive_group()
    quality.add_argument("-q1", dest="quality", action="store_const", const="professional",
                         help="Professional: 60 fps, CRF 18, capped VBV, BT.709")
    quality.add_argument("-q2", dest="quality", action="store_const", const="light",
                         help="Light: 30 fps, CRF 26, fast encode, small files")
    quality.add_argument("--quality", dest="quality",
                         choices=sorted(set(PROFILES) | {"youtube"}),
                         help="Quality profile by name")

    parser.add_argument("-a", "--system-audio", action="store_true",
                        help="Capture system/desktop audio (PulseAudio / PipeWire)")
    parser.add_argument("-v", "--mic", action="store_true",
                        help="Capture a microphone (interactive picker if several)")
    parser.add_argument("-m", "--mute", action="store_true",
                        help="Disable all audio (overrides -a and -v)")

    parser.add_argument("-n", "--no-countdown", action="store_true",
                        help="Start recording immediately")
    parser.add_argument("--countdown", type=int, default=DEFAULT_COUNTDOWN, metavar="SEC",
                        help=f"Countdown before recording (default: {DEFAULT_COUNTDOWN})")
    parser.add_argument("-o", "--output", metavar="FILE",
                        help="Output file (default: generated name in SCREENCAST_OUTDIR)")
    parser.add_argument("--log", metavar="FILE",
                        help="Session log file (default: SCREENCAST_LOG)")

    parser.add_argument("--list-audio", action="store_true",
                        help="List audio sources and exit")
    parser.add_argument("--list-monitors", action="store_true",
                        help="List monitors and exit")
    parser.add_argument("-V", "--version", action="version",
                        version=f"%(prog)s {__version__}")
    return parser


def mode_from_args(args: argparse.Namespace) -> CaptureMode:
    if args.fullscreen:
        return Fullscreen()
    if args.select:
        return RegionSelect()
    if args.window:
        return WindowClick()
    if args.resolution is not None:
        return parse_resolution(args.resolution)
    if args.crop is not None:
        return parse_crop(args.crop)
    raise ConfigurationError("A capture mode is required: -f, -s, -w, -r WxH or -c L,R,T,B")


def config_from_args(args: argparse.Namespace, settings: Settings) -> RecordConfig:
    """Validate parsed arguments into a RecordConfig.

    Raises:
        ConfigurationError: On a missing mode or quality, or bad values.
    """
    mode = mode_from_args(args)
    if isinstance(mode, FixedResolution):
        validate_requested_size(mode.w, mode.h)
    if not args.quality:
        raise ConfigurationError("A quality profile is required: -q1 (professional) or -q2 (light)")
    profile = get_profile(args.quality)
    if args.countdown < 0:
        raise ConfigurationError(f"Countdown must be zero or positive, got {args.countdown}")

    return RecordConfig(
        mode=mode,
        profile=profile.name,
        log_path=Path(args.log) if args.log else settings.log_path,
        output_path=Path(args.output).expanduser() if args.output else None,
        system_audio=args.system_audio,
        mic_audio=args.mic,
        mute=args.mute,
        countdown=0 if args.no_countdown else args.countdown,
        display_name=settings.display_name,
    )


def check_dependencies(config: RecordConfig, console: StatusConsole) -> Tuple[Any, Any]:
    """Check external programs needed for this configuration.

    Returns:
        (selector, picker) for the interactive modes; None where unused.

    Raises:
        ToolMissing: If ffmpeg or the mode's interactive tool is missing.
    """
    if shutil.which("ffmpeg") is None:
        raise ToolMissing("ffmpeg is not installed. Install it with your package manager.")

    selector = picker = None
    if isinstance(config.mode, RegionSelect):
        selector = default_selector()
        if selector is None:
            raise ToolMissing(
                "slop is not installed (required for -s). Install: apt/dnf/pacman install slop"
            )
    elif isinstance(config.mode, WindowClick):
        picker = default_picker()
        if picker is None:
            raise ToolMissing(
                "xwininfo is not installed (required for -w). Install: apt install x11-utils "
                "/ dnf install xorg-x11-utils / pacman -S xorg-xwininfo"
            )

    if config.wants_system_audio or config.wants_mic_audio:
        available, _ = check_audio_tools()
        if not available:
            console.warn("Neither pactl (PulseAudio/PipeWire) nor arecord (ALSA) found.")
            console.warn("Audio capture may not work.")
    return selector, picker


def record(
    config: RecordConfig,
    settings: Settings,
    console: StatusConsole,
    display: Optional[Any] = None,
    selector: Optional[Any] = None,
    picker: Optional[Any] = None,
    audio_resolver: Optional[AudioResolver] = None,
    supervisor_factory: Any = Supervisor,
) -> int:
    """Run one recording end to end and return the exit code."""
    found_selector, found_picker = check_dependencies(config, console)
    profile = get_profile(config.profile)

    output_dir = config.output_path.parent if config.output_path else settings.output_dir
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(f"Cannot create output directory: {output_dir} ({e})") from None

    resolver = RegionResolver(
        display or Display(),
        console,
        selector=selector or found_selector,
        picker=picker or found_picker,
    )
    rect = resolver.resolve(config.mode)

    audio = (audio_resolver or AudioResolver(console)).resolve(
        config.wants_system_audio, config.wants_mic_audio
    )

    if config.output_path is None:
        tag = rect.size if isinstance(config.mode, FixedResolution) else config.mode.tag
        config = replace(
            config,
            output_path=output_path_for(output_dir, tag, profile.name, bool(audio)),
        )

    supervisor = supervisor_factory(config, console)
    result = supervisor.run(rect, profile, audio)
    return result.exit_code


def list_audio() -> int:
    sources = list_audio_sources()
    if sources:
        print("Audio sources:")
        for name, desc in sources:
            print(f"  {name}  ({desc})" if desc != name else f"  {name}")
    else:
        print("No audio sources found (PulseAudio may not be running)")
    return EXIT_OK


def list_monitors(display: Any) -> int:
    monitors = display.monitors()
    print(f"Found {len(monitors)} monitor(s):")
    for i, m in enumerate(monitors, 1):
        print(f"  {i}: {m.name} {m.w}x{m.h} at ({m.x}, {m.y})")
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args_list: List[str] = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    if not args_list:
        parser.print_help()
        return EXIT_OK

    args = parser.parse_args(args_list)
    console = StatusConsole()
    settings = Settings.from_env()

    if args.list_audio:
        return list_audio()
    if args.list_monitors:
        return list_monitors(Display())

    try:
        config = config_from_args(args, settings)
        return record(config, settings, console)
    except SelectionCancelled as e:
        console.msg(str(e))
        return e.exit_code
    except ScreencastError as e:
        console.error(str(e))
        return e.exit_code
    except KeyboardInterrupt:
        console.msg()
        console.warn("Interrupted before recording started.")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
