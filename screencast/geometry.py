#!/usr/bin/env python3
"""Screen geometry providers.

Each provider asks one introspection tool for the screen layout and
returns None on any failure: a missing binary, a non-zero exit, or output
it cannot parse. Callers decide whether a None is fatal.

Virtual screen (all monitors combined), first success wins:
    1. xrandr --current    "current W x H"
    2. xwininfo -root      Width / Height
    3. xdpyinfo            "dimensions: WxH pixels"
    4. mss                 monitor 0

Primary monitor:
    1. xrandr --query      "<output> connected primary WxH+X+Y"
    2. mss                 monitor 1
    3. synthetic monitor equal to the virtual screen
"""

from __future__ import annotations

import re
import subprocess
from typing import Callable, List, Optional, Sequence

from mss import mss
from mss.exception import ScreenShotError

from screencast.types import MonitorInfo, Rectangle

_XRANDR_CURRENT = re.compile(r"current\s+(\d+)\s*x\s*(\d+)")
_XWININFO_FIELD = re.compile(r"^\s*(Width|Height):\s*(\d+)\s*$", re.MULTILINE)
_XDPYINFO_DIMS = re.compile(r"dimensions:\s+(\d+)x(\d+)")
_XRANDR_OUTPUT = re.compile(
    r"^(?P<name>\S+) connected (?P<primary>primary )?"
    r"(?P<w>\d+)x(?P<h>\d+)\+(?P<x>\d+)\+(?P<y>\d+)",
    re.MULTILINE,
)


def _run(cmd: Sequence[str]) -> Optional[str]:
    """Run an introspection command, returning stdout or None."""
    try:
        result = subprocess.run(
            list(cmd), capture_output=True, text=True, check=True
        )
    except (subprocess.CalledProcessError, FileNotFoundError, OSError):
        return None
    return result.stdout


# ============================================================================
# VIRTUAL SCREEN
# ============================================================================


def screen_from_xrandr() -> Optional[Rectangle]:
    out = _run(["xrandr", "--current"])
    if not out:
        return None
    match = _XRANDR_CURRENT.search(out)
    if not match:
        return None
    return Rectangle(0, 0, int(match.group(1)), int(match.group(2)))


def screen_from_xwininfo() -> Optional[Rectangle]:
    out = _run(["xwininfo", "-root"])
    if not out:
        return None
    fields = {}
    for key, value in _XWININFO_FIELD.findall(out):
        fields.setdefault(key, int(value))
    if "Width" not in fields or "Height" not in fields:
        return None
    return Rectangle(0, 0, fields["Width"], fields["Height"])


def screen_from_xdpyinfo() -> Optional[Rectangle]:
    out = _run(["xdpyinfo"])
    if not out:
        return None
    match = _XDPYINFO_DIMS.search(out)
    if not match:
        return None
    return Rectangle(0, 0, int(match.group(1)), int(match.group(2)))


def _mss_monitors() -> Optional[List[dict]]:
    try:
        with mss() as sct:
            return [dict(m) for m in sct.monitors]
    except ScreenShotError:
        return None


def screen_from_mss() -> Optional[Rectangle]:
    monitors = _mss_monitors()
    if not monitors:
        return None
    m = monitors[0]
    return Rectangle(0, 0, int(m["width"]), int(m["height"]))


SCREEN_PROVIDERS: List[Callable[[], Optional[Rectangle]]] = [
    screen_from_xrandr,
    screen_from_xwininfo,
    screen_from_xdpyinfo,
    screen_from_mss,
]


def get_virtual_screen() -> Optional[Rectangle]:
    """Return the virtual screen bounds from the first working provider."""
    for provider in SCREEN_PROVIDERS:
        rect = provider()
        if rect is not None and rect.w > 0 and rect.h > 0:
            return rect
    return None


# ============================================================================
# MONITORS
# ============================================================================


def monitors_from_xrandr() -> List[MonitorInfo]:
    """List connected, active outputs; the primary one (if flagged) first."""
    out = _run(["xrandr", "--query"])
    if not out:
        return []
    primary: List[MonitorInfo] = []
    others: List[MonitorInfo] = []
    for match in _XRANDR_OUTPUT.finditer(out):
        info = MonitorInfo(
            x=int(match.group("x")),
            y=int(match.group("y")),
            w=int(match.group("w")),
            h=int(match.group("h")),
            name=match.group("name"),
        )
        (primary if match.group("primary") else others).append(info)
    return primary + others


def primary_from_xrandr() -> Optional[MonitorInfo]:
    out = _run(["xrandr", "--query"])
    if not out:
        return None
    for match in _XRANDR_OUTPUT.finditer(out):
        if match.group("primary"):
            return MonitorInfo(
                x=int(match.group("x")),
                y=int(match.group("y")),
                w=int(match.group("w")),
                h=int(match.group("h")),
                name=match.group("name"),
            )
    return None


def monitors_from_mss() -> List[MonitorInfo]:
    monitors = _mss_monitors() or []
    return [
        MonitorInfo(
            x=int(m["left"]), y=int(m["top"]),
            w=int(m["width"]), h=int(m["height"]),
            name=f"monitor-{i}",
        )
        for i, m in enumerate(monitors[1:], 1)
    ]


def primary_from_mss() -> Optional[MonitorInfo]:
    monitors = monitors_from_mss()
    return monitors[0] if monitors else None


def get_primary_monitor() -> Optional[MonitorInfo]:
    """Return the primary monitor, or a synthetic one covering the whole screen.

    Returns None only when no provider can describe the screen at all.
    """
    for provider in (primary_from_xrandr, primary_from_mss):
        monitor = provider()
        if monitor is not None and monitor.w > 0 and monitor.h > 0:
            return monitor
    screen = get_virtual_screen()
    if screen is None:
        return None
    return MonitorInfo(screen.x, screen.y, screen.w, screen.h, name="screen")


def get_all_monitors() -> List[MonitorInfo]:
    """List all monitors, falling back to mss when xrandr is unavailable."""
    return monitors_from_xrandr() or monitors_from_mss()


class Display:
    """Live view of the X11 display.

    Every call queries the tools again; the layout can change between
    sessions (monitors plugged, resolution switched).
    """

    def virtual_screen(self) -> Optional[Rectangle]:
        return get_virtual_screen()

    def primary_monitor(self) -> Optional[MonitorInfo]:
        return get_primary_monitor()

    def monitors(self) -> List[MonitorInfo]:
        return get_all_monitors()
