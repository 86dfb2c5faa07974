#!/usr/bin/env python3
"""Audio device discovery and selection.

System audio is captured from the monitor source of the default
PulseAudio/PipeWire sink. Microphones are enumerated from PulseAudio
(non-monitor sources) or, without pactl, from ALSA capture devices. When
several microphones exist the operator picks one from a numbered list;
the resolver never guesses between candidates.
"""

from __future__ import annotations

import re
import shutil
import subprocess
import sys
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from screencast.errors import AudioToolMissing, NoAudioDevices, NoInteractiveTerminal
from screencast.logger import StatusConsole
from screencast.types import AUDIO_MICROPHONE, AUDIO_SYSTEM, AudioDescriptor


def _pactl(*args: str) -> Optional[str]:
    try:
        result = subprocess.run(
            ["pactl", *args], capture_output=True, text=True, check=True
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None
    return result.stdout


def check_audio_tools() -> Tuple[bool, str]:
    """Check for audio capture tools. Returns (available, tool_name)."""
    if shutil.which("pactl"):
        return True, "pulseaudio"
    if shutil.which("arecord"):
        return True, "alsa"
    return False, ""


def has_pactl() -> bool:
    """True when pactl exists and can reach a running sound server."""
    return shutil.which("pactl") is not None and _pactl("info") is not None


def has_arecord() -> bool:
    return shutil.which("arecord") is not None


# ============================================================================
# PULSEAUDIO / PIPEWIRE
# ============================================================================


def get_default_sink() -> Optional[str]:
    out = _pactl("get-default-sink")
    if out and out.strip():
        return out.strip()
    # Older pactl has no get-default-sink
    info = _pactl("info")
    if not info:
        return None
    match = re.search(r"^Default Sink:\s*(\S+)", info, re.MULTILINE)
    return match.group(1) if match else None


def pulse_list_sources() -> List[str]:
    """List source names from ``pactl list short sources``."""
    out = _pactl("list", "short", "sources")
    sources: List[str] = []
    if not out:
        return sources
    for line in out.strip().split("\n"):
        parts = line.split("\t")
        if len(parts) >= 2 and parts[1]:
            sources.append(parts[1])
    return sources


def pulse_source_details() -> Dict[str, Dict[str, str]]:
    """Map source name to its Description and Monitor of Sink fields."""
    out = _pactl("list", "sources")
    details: Dict[str, Dict[str, str]] = {}
    if not out:
        return details
    current: Optional[Dict[str, str]] = None
    for line in out.split("\n"):
        stripped = line.strip()
        if stripped.startswith("Name:"):
            current = details.setdefault(stripped.split(":", 1)[1].strip(), {})
        elif current is not None and stripped.startswith("Description:"):
            current["description"] = stripped.split(":", 1)[1].strip()
        elif current is not None and stripped.startswith("Monitor of Sink:"):
            current["monitor_of"] = stripped.split(":", 1)[1].strip()
    return details


def pulse_default_monitor() -> Optional[str]:
    """Find the monitor source of the default sink (desktop audio)."""
    sink = get_default_sink()
    if not sink:
        return None
    monitor = f"{sink}.monitor"
    if monitor in pulse_list_sources():
        return monitor
    for name, fields in pulse_source_details().items():
        if fields.get("monitor_of") == sink:
            return name
    return None


def list_microphones() -> List[Tuple[str, str]]:
    """List (source name, description) for non-monitor PulseAudio sources."""
    details = pulse_source_details()
    return [
        (name, details.get(name, {}).get("description") or name)
        for name in pulse_list_sources()
        if not name.endswith(".monitor")
    ]


def list_audio_sources() -> List[Tuple[str, str]]:
    """List every PulseAudio source as (name, description)."""
    details = pulse_source_details()
    return [
        (name, details.get(name, {}).get("description") or name)
        for name in pulse_list_sources()
    ]


# ============================================================================
# ALSA
# ============================================================================

_ARECORD_LINE = re.compile(
    r"^card (?P<card>\d+): (?P<card_name>[^\[,]*?)\s*(?:\[[^\]]*\])?, "
    r"device (?P<dev>\d+): (?P<desc>.*)$"
)


def alsa_list_capture_devices() -> List[Tuple[str, str]]:
    """List (hw:C,D, label) capture devices from ``arecord -l``."""
    try:
        result = subprocess.run(
            ["arecord", "-l"], capture_output=True, text=True, check=True
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        return []
    devices: List[Tuple[str, str]] = []
    for line in result.stdout.split("\n"):
        match = _ARECORD_LINE.match(line.strip())
        if match:
            device_id = f"hw:{match.group('card')},{match.group('dev')}"
            devices.append((device_id, f"{match.group('desc')} ({match.group('card_name')})"))
    return devices


# ============================================================================
# INTERACTIVE CHOICE
# ============================================================================


def choose_from_list(
    prompt: str,
    items: Sequence[str],
    console: StatusConsole,
    read_line: Callable[[str], str],
) -> int:
    """Show a numbered menu and return the 0-based index chosen.

    Raises:
        NoAudioDevices: If ``items`` is empty.
        NoInteractiveTerminal: If input ends before a valid choice.
    """
    if not items:
        raise NoAudioDevices("No devices found.")
    console.msg()
    console.msg(prompt)
    for idx, item in enumerate(items, 1):
        console.msg(f"  {idx:2d}) {item}")
    console.msg()
    while True:
        try:
            choice = read_line(f"  Select [1-{len(items)}]: ").strip()
        except EOFError:
            raise NoInteractiveTerminal("Failed to read input.") from None
        if choice.isdecimal() and 1 <= int(choice) <= len(items):
            return int(choice) - 1
        console.warn(f"Invalid choice. Enter a number between 1 and {len(items)}.")


class AudioResolver:
    """Reduce the audio flags to a list of encoder inputs.

    Args:
        console: Status output.
        is_interactive: Returns True when stdin is a terminal.
        read_line: Prompt-and-read function used for device choice.
    """

    def __init__(
        self,
        console: StatusConsole,
        is_interactive: Optional[Callable[[], bool]] = None,
        read_line: Optional[Callable[[str], str]] = None,
    ) -> None:
        self.console = console
        self.is_interactive = is_interactive or sys.stdin.isatty
        self.read_line = read_line or console.console.input

    def resolve(self, system: bool, mic: bool) -> List[AudioDescriptor]:
        descriptors: List[AudioDescriptor] = []
        if system:
            sys_desc = self.system_audio()
            if sys_desc is not None:
                descriptors.append(sys_desc)
        if mic:
            descriptors.append(self.microphone())
        return descriptors

    def system_audio(self) -> Optional[AudioDescriptor]:
        if not has_pactl():
            self.console.warn("-a requested but pactl not found; skipping system audio.")
            return None
        source = pulse_default_monitor()
        if not source:
            source = "default"
            self.console.warn("Could not detect default sink monitor; using 'default'.")
        self.console.success(f"System audio: {source}")
        return AudioDescriptor(AUDIO_SYSTEM, source, "desktop audio", backend="pulse")

    def microphone(self) -> AudioDescriptor:
        if has_pactl():
            devices = list_microphones()
            backend = "pulse"
            prompt = "Available microphones (PulseAudio/PipeWire):"
            if not devices:
                raise NoAudioDevices("No microphone sources found.")
        elif has_arecord():
            devices = alsa_list_capture_devices()
            backend = "alsa"
            prompt = "Available microphones (ALSA):"
            if not devices:
                raise NoAudioDevices("No ALSA capture devices detected.")
        else:
            raise AudioToolMissing("-v requested but neither pactl nor arecord is available.")

        if len(devices) == 1:
            device_id, label = devices[0]
        else:
            if not self.is_interactive():
                raise NoInteractiveTerminal(
                    "Microphone selection (-v) requires an interactive terminal."
                )
            index = choose_from_list(prompt, [label for _, label in devices],
                                     self.console, self.read_line)
            device_id, label = devices[index]

        self.console.success(f"Microphone: {label}")
        return AudioDescriptor(AUDIO_MICROPHONE, device_id, label, backend=backend)
