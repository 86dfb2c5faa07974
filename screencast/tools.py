#!/usr/bin/env python3
"""Interactive selection tools.

Area selectors return the raw text ``"X Y W H"`` (empty string when the
operator cancels); the region resolver parses and validates it. Window
pickers return the raw window geometry, which may be partly or entirely
off-screen, or None when the operator cancels.

Area selectors:
    SlopSelector     slop, with options probed from its --help output
    PynputSelector   press-drag-release listener (no extra binary needed)

Window pickers:
    XwininfoPicker   xwininfo -frame (geometry includes WM decorations)
    XdotoolPicker    xdotool selectwindow + getwindowgeometry
"""

from __future__ import annotations

import re
import shutil
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from screencast.errors import InvalidToolOutput, ToolMissing


@dataclass(frozen=True)
class WindowGeometry:
    """Window rectangle as reported by the picker, origin may be negative."""

    x: int
    y: int
    w: int
    h: int
    title: str = "untitled"


# ============================================================================
# AREA SELECTION
# ============================================================================


class SlopSelector:
    """Drag-select an area with slop."""

    name = "slop"

    @staticmethod
    def is_available() -> bool:
        return shutil.which("slop") is not None

    @staticmethod
    def build_options() -> List[str]:
        """Pick the slop flags this slop build understands."""
        try:
            result = subprocess.run(
                ["slop", "--help"], capture_output=True, text=True
            )
        except (FileNotFoundError, OSError):
            return []
        help_text = (result.stdout or "") + (result.stderr or "")

        def has(pattern: str) -> bool:
            return re.search(pattern, help_text, re.IGNORECASE) is not None

        opts: List[str] = []
        if has(r"--quiet\b"):
            opts.append("--quiet")
        if has(r"--noopengl|--no-opengl"):
            opts.append("--noopengl")
        # Leave the keyboard ungrabbed so workspaces can be switched mid-select
        if has(r"--nokeyboard"):
            opts.append("--nokeyboard")
        elif has(r"--gracetime"):
            opts.append("--gracetime=999999")
        if has(r"--color"):
            opts.append("--color=0.3,0.5,1,0.4")
        return opts

    def select(self) -> str:
        cmd = ["slop", *self.build_options(), "-f", "%x %y %w %h"]
        try:
            result = subprocess.run(
                cmd, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL, text=True
            )
        except FileNotFoundError:
            raise ToolMissing(
                "slop is not installed (required for -s). Install: apt/dnf/pacman install slop"
            ) from None
        if result.returncode != 0:
            return ""
        return result.stdout.strip()


class PynputSelector:
    """Drag-select an area by listening to left-button press and release."""

    name = "pynput"

    @staticmethod
    def is_available() -> bool:
        try:
            from pynput import mouse  # noqa: F401
        except ImportError:
            return False
        return True

    def select(self) -> str:
        try:
            from pynput import mouse
        except ImportError as e:
            raise ToolMissing(f"pynput cannot be used for area selection: {e}") from None

        points: Dict[str, int] = {"start_x": 0, "start_y": 0, "end_x": 0, "end_y": 0}

        def on_click(x: int, y: int, button: Any, pressed: bool) -> Optional[bool]:
            if button != mouse.Button.left:
                return None
            if pressed:
                points["start_x"], points["start_y"] = int(x), int(y)
                return None
            points["end_x"], points["end_y"] = int(x), int(y)
            return False

        with mouse.Listener(on_click=on_click) as listener:
            listener.join()

        return rectangle_from_drag(
            points["start_x"], points["start_y"], points["end_x"], points["end_y"]
        )


def rectangle_from_drag(x0: int, y0: int, x1: int, y1: int) -> str:
    """Format a drag from (x0, y0) to (x1, y1); a plain click yields ''."""
    left, top = min(x0, x1), min(y0, y1)
    width, height = abs(x1 - x0), abs(y1 - y0)
    if width == 0 or height == 0:
        return ""
    return f"{max(0, left)} {max(0, top)} {width} {height}"


def default_selector() -> Optional[Any]:
    if SlopSelector.is_available():
        return SlopSelector()
    if PynputSelector.is_available():
        return PynputSelector()
    return None


# ============================================================================
# WINDOW PICKING
# ============================================================================

_INT = re.compile(r"^-?\d+$")


def parse_xwininfo(output: str) -> WindowGeometry:
    """Parse ``xwininfo -frame`` output into a window geometry.

    Raises:
        InvalidToolOutput: If any of the four geometry fields is missing or
            not an integer, or the window has no area.
    """
    fields: Dict[str, str] = {}
    patterns = {
        "x": r"Absolute upper-left X:\s*(\S+)",
        "y": r"Absolute upper-left Y:\s*(\S+)",
        "w": r"^\s*Width:\s*(\S+)",
        "h": r"^\s*Height:\s*(\S+)",
    }
    for key, pattern in patterns.items():
        match = re.search(pattern, output, re.MULTILINE)
        if match:
            fields[key] = match.group(1)

    values = {k: fields.get(k, "?") for k in patterns}
    if not all(_INT.match(v) for v in values.values()) or \
            values["w"].startswith("-") or values["h"].startswith("-"):
        raise InvalidToolOutput(
            "xwininfo returned unexpected geometry "
            f"(x={values['x']} y={values['y']} w={values['w']} h={values['h']})."
        )

    w, h = int(values["w"]), int(values["h"])
    if w < 1 or h < 1:
        raise InvalidToolOutput(f"Selected window has no visible area ({w}×{h}).")

    title_match = re.search(r'xwininfo: Window id: \S+ "([^"]*)"', output)
    title = title_match.group(1) if title_match and title_match.group(1) else "untitled"
    return WindowGeometry(int(values["x"]), int(values["y"]), w, h, title)


class XwininfoPicker:
    """Click a window; geometry includes the window-manager frame."""

    name = "xwininfo"

    @staticmethod
    def is_available() -> bool:
        return shutil.which("xwininfo") is not None

    def pick(self) -> Optional[WindowGeometry]:
        try:
            result = subprocess.run(
                ["xwininfo", "-frame"],
                stdout=subprocess.PIPE, stderr=subprocess.DEVNULL, text=True,
            )
        except FileNotFoundError:
            raise ToolMissing(
                "xwininfo is not installed (required for -w). Install: apt install "
                "x11-utils / dnf install xorg-x11-utils / pacman -S xorg-xwininfo"
            ) from None
        if result.returncode != 0 or not result.stdout.strip():
            return None
        return parse_xwininfo(result.stdout)


def get_window_geometry(window_id: str) -> Optional[WindowGeometry]:
    """Get window geometry using xdotool."""
    try:
        result = subprocess.run(
            ["xdotool", "getwindowgeometry", "--shell", window_id],
            capture_output=True, text=True, check=True
        )
        geometry: Dict[str, int] = {}
        for line in result.stdout.strip().split("\n"):
            if "=" in line:
                key, value = line.split("=", 1)
                if key in ("X", "Y", "WIDTH", "HEIGHT"):
                    geometry[key] = int(value)
    except (subprocess.CalledProcessError, FileNotFoundError, ValueError):
        return None

    if len(geometry) != 4:
        return None

    title = "untitled"
    try:
        name = subprocess.run(
            ["xdotool", "getwindowname", window_id],
            capture_output=True, text=True, check=True
        )
        title = name.stdout.strip() or title
    except (subprocess.CalledProcessError, FileNotFoundError):
        # Title is only shown in status lines
        pass

    return WindowGeometry(
        geometry["X"], geometry["Y"], geometry["WIDTH"], geometry["HEIGHT"], title
    )


class XdotoolPicker:
    """Click a window with xdotool; geometry excludes the WM frame."""

    name = "xdotool"

    @staticmethod
    def is_available() -> bool:
        return shutil.which("xdotool") is not None

    def pick(self) -> Optional[WindowGeometry]:
        try:
            result = subprocess.run(
                ["xdotool", "selectwindow"],
                capture_output=True, text=True, check=True
            )
        except FileNotFoundError:
            raise ToolMissing("xdotool required. Install: apt install xdotool") from None
        except subprocess.CalledProcessError:
            return None

        window_id = result.stdout.strip()
        if not window_id:
            return None
        geometry = get_window_geometry(window_id)
        if geometry is None:
            raise InvalidToolOutput(f"xdotool could not read geometry of window {window_id}.")
        return geometry


def default_picker() -> Optional[Any]:
    if XwininfoPicker.is_available():
        return XwininfoPicker()
    if XdotoolPicker.is_available():
        return XdotoolPicker()
    return None
