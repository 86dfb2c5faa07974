#!/usr/bin/env python3
"""Recording session supervision.

The supervisor builds the ffmpeg invocation, counts down, runs ffmpeg in
the background and owns its lifecycle until the MP4 is finalized:

    Idle -> Building -> Counting-Down -> Running -> Finalizing
         -> {Succeeded, SmallOutput, NoOutput}

While ffmpeg runs, SIGINT, SIGTERM, SIGHUP and SIGQUIT delivered to the
supervisor are caught and forwarded to the child as a single SIGINT.
ffmpeg needs that clean interrupt to flush its buffers and write the
moov atom; a supervisor dying alongside it would leave a truncated file.
The child runs in its own session, so a terminal Ctrl+C or hangup
reaches it only through the forwarder.

Whatever way the run ends, force_cleanup() runs with the same signals
routed away from the supervisor. It interrupts a still-running child,
waits up to KILL_GRACE_SECONDS, kills it if needed and reaps it.
It is safe to call more than once.
"""

from __future__ import annotations

import os
import shlex
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from types import FrameType
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from rich.live import Live
from rich.text import Text

from screencast.errors import ToolMissing
from screencast.logger import SessionLog, StatusConsole
from screencast.profiles import QualityProfile
from screencast.types import (
    EXIT_OK,
    EXIT_WARNING,
    KILL_GRACE_SECONDS,
    KILL_POLL_SECONDS,
    PROG_NAME,
    SMALL_OUTPUT_BYTES,
    TERMINAL_STATES,
    AudioDescriptor,
    Crop,
    FixedResolution,
    RecordConfig,
    Rectangle,
    SessionState,
    WindowClick,
    __version__,
)

# ============================================================================
# COMMAND BUILDING
# ============================================================================


def detect_fps_mode_flag() -> str:
    """Return ``-fps_mode`` on ffmpeg >= 5.1, the legacy ``-vsync`` otherwise."""
    try:
        result = subprocess.run(
            ["ffmpeg", "-hide_banner", "-h", "full"],
            capture_output=True, text=True
        )
    except (FileNotFoundError, OSError):
        return "-vsync"
    return "-fps_mode" if "-fps_mode" in (result.stdout or "") else "-vsync"


def audio_input_args(audio: AudioDescriptor) -> List[str]:
    return [
        "-thread_queue_size", "2048",
        "-f", audio.backend,
        "-ac", str(audio.channels),
        "-i", audio.device_id,
    ]


def audio_mapping_args(count: int) -> List[str]:
    """Stream mapping for ``count`` audio inputs following video input 0.

    No audio: nothing (ffmpeg keeps the single video stream). One input:
    direct mapping. Two or more: mixed into one stream with equal weights,
    lasting as long as the longest input.
    """
    if count <= 0:
        return []
    if count == 1:
        return ["-map", "0:v", "-map", "1:a"]
    labels = "".join(f"[{i}:a]" for i in range(1, count + 1))
    mix = (
        f"{labels}amix=inputs={count}:duration=longest:"
        "dropout_transition=3:normalize=0[aout]"
    )
    return ["-filter_complex", mix, "-map", "0:v", "-map", "[aout]"]


def build_command(
    rect: Rectangle,
    profile: QualityProfile,
    audio: Sequence[AudioDescriptor],
    output: Path,
    display_name: str = ":0",
    fps_mode_flag: str = "-fps_mode",
) -> List[str]:
    """Assemble the ffmpeg argument list for one recording."""
    gop = str(profile.keyframe_interval)

    cmd: List[str] = ["ffmpeg", "-hide_banner", "-nostdin", "-y"]
    cmd += [
        "-f", "x11grab",
        "-draw_mouse", "1",
        "-thread_queue_size", "2048",
        "-framerate", str(profile.frame_rate),
        "-video_size", rect.size,
        "-i", f"{display_name}+{rect.x},{rect.y}",
    ]
    for descriptor in audio:
        cmd += audio_input_args(descriptor)

    cmd += audio_mapping_args(len(audio))

    # Closed GOP: fixed keyframe spacing, no scene-cut keyframes
    cmd += [
        "-c:v", "libx264",
        "-profile:v", "high",
        "-preset", profile.encoder_preset,
        "-crf", str(profile.compression_factor),
        "-maxrate", profile.max_video_rate,
        "-bufsize", profile.buffer_size,
        "-g", gop,
        "-keyint_min", gop,
        "-sc_threshold", "0",
        fps_mode_flag, "cfr",
        "-pix_fmt", "yuv420p",
        "-color_range", "tv",
        "-colorspace", "bt709",
        "-color_trc", "bt709",
        "-color_primaries", "bt709",
    ]
    if audio:
        cmd += ["-c:a", "aac", "-b:a", profile.audio_bitrate, "-ar", "48000", "-ac", "2"]

    cmd += ["-movflags", "+faststart", str(output)]
    return cmd


# ============================================================================
# COUNTDOWN
# ============================================================================


def countdown(
    seconds: int,
    console: StatusConsole,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Show a one-line countdown before recording starts."""
    if seconds <= 0:
        return
    with Live(console=console.console, transient=True, auto_refresh=False) as live:
        for i in range(seconds, 0, -1):
            live.update(Text(f"  Recording starts in {i}...", style="countdown"), refresh=True)
            sleep(1)


# ============================================================================
# SIGNAL ISOLATION
# ============================================================================


class SignalIsolation:
    """Route termination signals to a callback instead of killing this process.

    Previous handlers are restored on exit. Must be entered from the main
    thread (a Python signal module restriction).
    """

    SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP, signal.SIGQUIT)

    def __init__(self, on_signal: Callable[[int], Any]) -> None:
        self.on_signal = on_signal
        self.received: List[int] = []
        self._previous: Dict[int, Any] = {}

    def _handler(self, signum: int, frame: Optional[FrameType]) -> None:
        self.received.append(signum)
        self.on_signal(signum)

    def __enter__(self) -> "SignalIsolation":
        for sig in self.SIGNALS:
            self._previous[sig] = signal.signal(sig, self._handler)
        return self

    def __exit__(self, *exc: Any) -> None:
        for sig, previous in self._previous.items():
            signal.signal(sig, previous if previous is not None else signal.SIG_DFL)
        self._previous.clear()


# ============================================================================
# SESSION HANDLE
# ============================================================================

_TRANSITIONS: Dict[SessionState, Tuple[SessionState, ...]] = {
    SessionState.IDLE: (SessionState.BUILDING,),
    SessionState.BUILDING: (SessionState.COUNTING_DOWN,),
    SessionState.COUNTING_DOWN: (SessionState.RUNNING,),
    SessionState.RUNNING: (SessionState.FINALIZING,),
    SessionState.FINALIZING: tuple(TERMINAL_STATES),
}


class SessionHandle:
    """Runtime state of one recording: the child, its output and flags."""

    def __init__(self, output_path: Path) -> None:
        self.output_path = Path(output_path)
        self.process: Optional["subprocess.Popen[bytes]"] = None
        self.state = SessionState.IDLE
        self.stop_requested = False
        self.reaped = False

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process is not None else None

    def advance(self, state: SessionState) -> None:
        if state not in _TRANSITIONS.get(self.state, ()):
            raise RuntimeError(f"Illegal session transition {self.state.value} -> {state.value}")
        self.state = state

    def is_alive(self) -> bool:
        return self.process is not None and self.process.poll() is None

    def request_stop(self) -> bool:
        """Send the child one SIGINT. Returns False if nothing was sent."""
        if self.stop_requested or not self.is_alive():
            return False
        self.stop_requested = True
        try:
            self.process.send_signal(signal.SIGINT)  # type: ignore[union-attr]
        except ProcessLookupError:
            return False
        return True

    def force_cleanup(
        self,
        console: StatusConsole,
        grace: float = KILL_GRACE_SECONDS,
        poll_interval: float = KILL_POLL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> bool:
        """Interrupt, wait, kill if needed, and reap the child.

        Returns:
            True if this call reaped the child, False if there was nothing
            to do (never started or already reaped).
        """
        if self.process is None or self.reaped:
            return False

        try:
            if self.process.poll() is None:
                self.request_stop()
                ticks = max(1, int(round(grace / poll_interval)))
                for _ in range(ticks):
                    if self.process.poll() is not None:
                        break
                    sleep(poll_interval)
        finally:
            # Kill and reap even when the grace wait is interrupted
            if self.process.poll() is None:
                console.warn("ffmpeg did not exit gracefully — force killing (file may be corrupt).")
                try:
                    self.process.kill()
                except ProcessLookupError:
                    pass
            self.process.wait()
            self.reaped = True
        return True


# ============================================================================
# OUTPUT VALIDATION
# ============================================================================


def validate_output(path: Path, min_bytes: int = SMALL_OUTPUT_BYTES) -> Tuple[SessionState, int]:
    """Classify the finished output file.

    Returns:
        (state, size_bytes); size is 0 when the file is missing.
    """
    path = Path(path)
    if not path.is_file():
        return SessionState.NO_OUTPUT, 0
    size = path.stat().st_size
    if size <= min_bytes:
        return SessionState.SMALL_OUTPUT, size
    return SessionState.SUCCEEDED, size


def format_size(size_bytes: int) -> str:
    if size_bytes >= 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    if size_bytes >= 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes} B"


@dataclass(frozen=True)
class SessionResult:
    state: SessionState
    output_path: Path
    size_bytes: int = 0

    @property
    def exit_code(self) -> int:
        return EXIT_OK if self.state is SessionState.SUCCEEDED else EXIT_WARNING


# ============================================================================
# SUPERVISOR
# ============================================================================


class Supervisor:
    """Run one recording session from command building to validation.

    Args:
        config: Immutable recording configuration; ``output_path`` must be set.
        console: Status output.
        session_log: Session log; defaults to ``config.log_path``.
        popen: Process factory (``subprocess.Popen`` signature).
        sleep: Sleep function used by the countdown and cleanup polling.
        isolation: Signal isolation context manager factory.
        fps_mode_flag: Override ffmpeg capability detection.
        settle: Seconds to wait after the child exits before checking output.
    """

    def __init__(
        self,
        config: RecordConfig,
        console: StatusConsole,
        session_log: Optional[SessionLog] = None,
        popen: Callable[..., Any] = subprocess.Popen,
        sleep: Callable[[float], None] = time.sleep,
        isolation: Callable[[Callable[[int], Any]], Any] = SignalIsolation,
        fps_mode_flag: Optional[str] = None,
        settle: float = 0.5,
    ) -> None:
        if config.output_path is None:
            raise ValueError("RecordConfig.output_path must be set before supervising")
        self.config = config
        self.console = console
        self.session_log = session_log or SessionLog(config.log_path)
        self.popen = popen
        self.sleep = sleep
        self.isolation = isolation
        self.fps_mode_flag = fps_mode_flag
        self.settle = settle
        self.handle = SessionHandle(config.output_path)

    # -- build ---------------------------------------------------------------

    def build(
        self, rect: Rectangle, profile: QualityProfile, audio: Sequence[AudioDescriptor]
    ) -> List[str]:
        """Assemble the command and record it in the session log."""
        self.handle.advance(SessionState.BUILDING)
        fps_flag = self.fps_mode_flag or detect_fps_mode_flag()
        cmd = build_command(
            rect, profile, audio, self.handle.output_path,
            display_name=self.config.display_name, fps_mode_flag=fps_flag,
        )
        audio_field = " ".join(str(a) for a in audio) if audio else "none (mute)"
        self.session_log.write_session_header(
            f"{PROG_NAME} v{__version__}",
            [
                ("MODE", self.config.mode.tag),
                ("QUALITY", profile.name),
                ("FPS", str(profile.frame_rate)),
                ("CRF", str(profile.compression_factor)),
                ("PRESET", profile.encoder_preset),
                ("MAXRATE", profile.max_video_rate),
                ("BUFSIZE", profile.buffer_size),
                ("GOP", str(profile.keyframe_interval)),
                ("DISPLAY", self.config.display_name),
                ("OFFSET", f"{rect.x},{rect.y}"),
                ("SIZE", rect.size),
                ("AUDIO", audio_field),
                ("OUTPUT", str(self.handle.output_path)),
                ("CMD", shlex.join(cmd)),
            ],
        )
        return cmd

    # -- run -----------------------------------------------------------------

    def run(
        self, rect: Rectangle, profile: QualityProfile, audio: Sequence[AudioDescriptor]
    ) -> SessionResult:
        cmd = self.build(rect, profile, audio)

        self.handle.advance(SessionState.COUNTING_DOWN)
        countdown(self.config.countdown, self.console, self.sleep)
        self._print_banner(rect, profile, audio)

        try:
            self._launch_and_wait(cmd)
        except BaseException:
            with self.isolation(self._forward_stop):
                reaped = self.force_cleanup()
            if reaped and self.handle.state is SessionState.RUNNING:
                self.finalize()
            raise
        with self.isolation(self._forward_stop):
            self.force_cleanup()
        return self.finalize()

    def _forward_stop(self, signum: int) -> None:
        self.handle.request_stop()

    def _launch_and_wait(self, cmd: List[str]) -> None:
        handle = self.handle
        with self.session_log.open_for_child() as log_fh:
            with self.isolation(self._forward_stop):
                try:
                    handle.process = self.popen(
                        cmd,
                        stdin=subprocess.DEVNULL,
                        stdout=log_fh,
                        stderr=subprocess.STDOUT,
                        start_new_session=True,
                    )
                except FileNotFoundError:
                    raise ToolMissing(
                        "ffmpeg is not installed. Install it with your package manager."
                    ) from None
                handle.advance(SessionState.RUNNING)
                handle.process.wait()

    def force_cleanup(self) -> bool:
        return self.handle.force_cleanup(self.console, sleep=self.sleep)

    # -- finalize ------------------------------------------------------------

    def finalize(self) -> SessionResult:
        """Validate the output once the child has been reaped."""
        handle = self.handle
        handle.advance(SessionState.FINALIZING)

        self.console.msg()
        self.console.banner([("  ■ STOP", "bold"), ("  Finalizing...", "")])
        if hasattr(os, "sync"):
            os.sync()
        if self.settle > 0:
            self.sleep(self.settle)

        state, size = validate_output(handle.output_path)
        handle.advance(state)
        result = SessionResult(state, handle.output_path, size)
        self._print_summary(result)
        self.session_log.write_status(state.value, f"{handle.output_path} ({size} bytes)")
        return result

    def _print_banner(
        self, rect: Rectangle, profile: QualityProfile, audio: Sequence[AudioDescriptor]
    ) -> None:
        audio_summary = " ".join(str(a) for a in audio) if audio else "mute"
        mode = self.config.mode
        self.console.msg()
        self.console.banner([
            ("  ● REC", "rec"),
            ("  Recording", "bold"),
            (f"  →  {self.handle.output_path}", ""),
        ])
        self.console.msg(
            f"         {rect.w}×{rect.h} @ {profile.frame_rate}fps · {profile.name} · {audio_summary}"
        )
        if isinstance(mode, FixedResolution):
            self.console.msg(f"         Centered at +{rect.x},+{rect.y} on screen")
        elif isinstance(mode, WindowClick):
            self.console.msg(f"         Window at +{rect.x},+{rect.y}")
        elif isinstance(mode, Crop):
            self.console.msg(f"         Cropped area at +{rect.x},+{rect.y}")
        self.console.banner([("         Press ", ""), ("Ctrl+C", "bold"), (" to stop", "")])
        self.console.msg()

    def _print_summary(self, result: SessionResult) -> None:
        log_path = self.session_log.path
        self.console.msg()
        if result.state is SessionState.SUCCEEDED:
            self.console.success(
                f"Recording saved: {result.output_path}  ({format_size(result.size_bytes)})"
            )
            self.console.info(f"Log: {log_path}")
        elif result.state is SessionState.SMALL_OUTPUT:
            self.console.warn(
                f"Output file is suspiciously small ({format_size(result.size_bytes)}). "
                "Recording may have failed."
            )
            self.console.warn(f"Check log: {log_path}")
            self.console.info(f"Log: {log_path}")
        else:
            self.console.warn(f"No output file was produced. Check {log_path} for errors.")
