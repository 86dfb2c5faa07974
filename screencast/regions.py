#!/usr/bin/env python3
"""Capture region resolution.

Turns a CaptureMode into the Rectangle handed to the encoder. The
per-mode resolvers are pure functions over already-queried geometry so
they can be tested without a display; RegionResolver wires them to the
live display, the interactive tools and the status console.

Every rectangle leaving this module has a non-negative origin and even
width and height of at least MIN_CAPTURE_DIM (libx264 with yuv420p
rejects odd dimensions).
"""

from __future__ import annotations

import re
from typing import Any, Optional, Tuple

from screencast.errors import (
    CropTooAggressive,
    GeometryUnavailable,
    InvalidGeometry,
    InvalidToolOutput,
    OutOfRange,
    RegionTooSmall,
    ResolutionExceedsMonitor,
    SelectionCancelled,
    ToolMissing,
    WindowOffScreen,
)
from screencast.logger import StatusConsole
from screencast.tools import WindowGeometry
from screencast.types import (
    MAX_REQUEST_HEIGHT,
    MAX_REQUEST_WIDTH,
    MIN_CAPTURE_DIM,
    CaptureMode,
    Crop,
    FixedResolution,
    Fullscreen,
    MonitorInfo,
    Rectangle,
    RegionSelect,
    WindowClick,
)

_RESOLUTION = re.compile(r"^\s*(\d+)\s*[xX×]\s*(\d+)\s*$")


def even_floor(n: int) -> int:
    """Round down to the nearest even number."""
    return n - (n % 2)


def _require_min_size(rect: Rectangle, what: str) -> Rectangle:
    if rect.w < MIN_CAPTURE_DIM or rect.h < MIN_CAPTURE_DIM:
        raise RegionTooSmall(
            f"{what} too small ({rect.w}×{rect.h}). "
            f"Minimum is {MIN_CAPTURE_DIM}×{MIN_CAPTURE_DIM}."
        )
    return rect


# ============================================================================
# FULLSCREEN
# ============================================================================


def resolve_fullscreen(screen: Optional[Rectangle]) -> Rectangle:
    """Cover the whole virtual screen, origin (0, 0)."""
    if screen is None:
        raise GeometryUnavailable()
    return _require_min_size(
        Rectangle(0, 0, even_floor(screen.w), even_floor(screen.h)), "Screen"
    )


# ============================================================================
# REGION SELECT
# ============================================================================


def parse_selection(raw: Optional[str]) -> Rectangle:
    """Parse a selector's ``"X Y W H"`` output.

    Raises:
        SelectionCancelled: If the output is empty.
        InvalidToolOutput: If it is not four non-negative integers.
    """
    if raw is None or not raw.strip():
        raise SelectionCancelled("Selection cancelled.")
    parts = raw.split()
    if len(parts) != 4 or not all(p.isdecimal() for p in parts):
        raise InvalidToolOutput(f"Selection tool returned invalid geometry: '{raw.strip()}'")
    x, y, w, h = (int(p) for p in parts)
    return Rectangle(x, y, w, h)


def resolve_region_select(raw: Optional[str]) -> Rectangle:
    rect = parse_selection(raw)
    return _require_min_size(
        Rectangle(rect.x, rect.y, even_floor(rect.w), even_floor(rect.h)),
        "Capture area",
    )


# ============================================================================
# WINDOW CLICK
# ============================================================================


def clamp_to_screen(raw: WindowGeometry, screen_w: int, screen_h: int) -> Rectangle:
    """Clip a window rectangle to the visible screen.

    Left/top overflow moves the origin to 0 and shrinks the size by the
    overflow; right/bottom overflow shrinks the size to fit. A rectangle
    already on screen comes back unchanged.

    Raises:
        WindowOffScreen: If nothing of the window is visible.
    """
    x, y, w, h = raw.x, raw.y, raw.w, raw.h

    if x < 0:
        w += x
        x = 0
    if y < 0:
        h += y
        y = 0

    if x + w > screen_w:
        w = screen_w - x
    if y + h > screen_h:
        h = screen_h - y

    if w < 1 or h < 1:
        raise WindowOffScreen("Window is entirely off-screen — nothing to record.")
    return Rectangle(x, y, w, h)


def resolve_window_click(raw: WindowGeometry, screen: Optional[Rectangle]) -> Rectangle:
    """Resolve a picked window against the screen bounds.

    Without screen bounds the raw geometry is used as-is apart from
    flooring negative origins to 0.
    """
    if screen is not None:
        rect = clamp_to_screen(raw, screen.w, screen.h)
    else:
        rect = Rectangle(max(0, raw.x), max(0, raw.y), raw.w, raw.h)
    return _require_min_size(
        Rectangle(rect.x, rect.y, even_floor(rect.w), even_floor(rect.h)),
        "Capture area",
    )


# ============================================================================
# FIXED RESOLUTION
# ============================================================================


def parse_resolution(text: str) -> FixedResolution:
    """Parse ``WxH`` (``x``, ``X`` or ``×``) into a FixedResolution mode.

    Raises:
        OutOfRange: If the format is wrong.
    """
    match = _RESOLUTION.match(text)
    if not match:
        raise OutOfRange(
            f"Invalid resolution format: '{text}'. Expected WxH (e.g. 1280x720, 800x600)."
        )
    return FixedResolution(int(match.group(1)), int(match.group(2)))


def validate_requested_size(w: int, h: int) -> Tuple[int, int]:
    """Check a requested size against the 16×16 .. 7680×4320 range.

    Returns:
        (w, h) rounded down to even.

    Raises:
        OutOfRange: If either dimension is outside the range.
    """
    if w < MIN_CAPTURE_DIM or h < MIN_CAPTURE_DIM:
        raise OutOfRange(
            f"Requested resolution {w}×{h} is too small. "
            f"Minimum is {MIN_CAPTURE_DIM}x{MIN_CAPTURE_DIM}."
        )
    if w > MAX_REQUEST_WIDTH or h > MAX_REQUEST_HEIGHT:
        raise OutOfRange(
            f"Requested resolution {w}×{h} exceeds 8K maximum "
            f"({MAX_REQUEST_WIDTH}x{MAX_REQUEST_HEIGHT})."
        )
    return even_floor(w), even_floor(h)


def resolve_fixed_resolution(w: int, h: int, monitor: Optional[MonitorInfo]) -> Rectangle:
    """Center a w×h area on the primary monitor."""
    w, h = validate_requested_size(w, h)
    if monitor is None:
        raise GeometryUnavailable()
    if w > monitor.w:
        raise ResolutionExceedsMonitor(
            f"Requested width {w} exceeds monitor width {monitor.w}."
        )
    if h > monitor.h:
        raise ResolutionExceedsMonitor(
            f"Requested height {h} exceeds monitor height {monitor.h}."
        )
    x = monitor.x + (monitor.w - w) // 2
    y = monitor.y + (monitor.h - h) // 2
    return Rectangle(x, y, w, h)


# ============================================================================
# CROP
# ============================================================================


def parse_crop(text: str) -> Crop:
    """Parse ``L,R,T,B`` crop margins.

    Raises:
        OutOfRange: If there are not four non-negative integers.
    """
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 4 or not all(p.isdecimal() for p in parts):
        raise OutOfRange(
            f"Invalid crop margins: '{text}'. Expected LEFT,RIGHT,TOP,BOTTOM (e.g. 0,0,40,0)."
        )
    left, right, top, bottom = (int(p) for p in parts)
    return Crop(left, right, top, bottom)


def resolve_crop(
    left: int, right: int, top: int, bottom: int, monitor: Optional[MonitorInfo]
) -> Rectangle:
    """Trim margins off the primary monitor.

    Dimensions are rounded to even only after the margins are subtracted,
    so the left/top crop edges stay exactly where they were asked for.
    """
    if min(left, right, top, bottom) < 0:
        raise OutOfRange(f"Crop margins must be non-negative: {left},{right},{top},{bottom}")
    if monitor is None:
        raise GeometryUnavailable()

    w = monitor.w - left - right
    h = monitor.h - top - bottom
    if w < MIN_CAPTURE_DIM:
        raise CropTooAggressive(
            f"Left+right crop ({left + right}px) leaves {w}px of the {monitor.w}px "
            f"monitor width. Minimum is {MIN_CAPTURE_DIM}."
        )
    if h < MIN_CAPTURE_DIM:
        raise CropTooAggressive(
            f"Top+bottom crop ({top + bottom}px) leaves {h}px of the {monitor.h}px "
            f"monitor height. Minimum is {MIN_CAPTURE_DIM}."
        )
    return Rectangle(monitor.x + left, monitor.y + top, even_floor(w), even_floor(h))


# ============================================================================
# CENTRAL CHECK AND DISPATCH
# ============================================================================


def validate_rectangle(rect: Rectangle) -> Rectangle:
    """Final check applied to every mode's result before encoding.

    Raises:
        InvalidGeometry: If the rectangle would be rejected by the encoder.
    """
    if rect.x < 0 or rect.y < 0:
        raise InvalidGeometry(f"Invalid geometry (x={rect.x} y={rect.y} w={rect.w} h={rect.h}).")
    if rect.w < MIN_CAPTURE_DIM or rect.h < MIN_CAPTURE_DIM:
        raise InvalidGeometry(
            f"Capture area too small ({rect.w}×{rect.h}). "
            f"Minimum is {MIN_CAPTURE_DIM}×{MIN_CAPTURE_DIM}."
        )
    if rect.w % 2 or rect.h % 2:
        raise InvalidGeometry(f"Capture area {rect.w}×{rect.h} must have even dimensions.")
    return rect


class RegionResolver:
    """Resolve a capture mode against the live display.

    Args:
        display: Geometry source (``screencast.geometry.Display`` or a fake).
        console: Status output.
        selector: Area selector with ``select() -> str``, needed for RegionSelect.
        picker: Window picker with ``pick() -> Optional[WindowGeometry]``,
            needed for WindowClick.
    """

    def __init__(
        self,
        display: Any,
        console: StatusConsole,
        selector: Optional[Any] = None,
        picker: Optional[Any] = None,
    ) -> None:
        self.display = display
        self.console = console
        self.selector = selector
        self.picker = picker

    def resolve(self, mode: CaptureMode) -> Rectangle:
        if isinstance(mode, Fullscreen):
            rect = self._fullscreen()
        elif isinstance(mode, RegionSelect):
            rect = self._region_select()
        elif isinstance(mode, WindowClick):
            rect = self._window_click()
        elif isinstance(mode, FixedResolution):
            rect = self._fixed_resolution(mode)
        elif isinstance(mode, Crop):
            rect = self._crop(mode)
        else:
            raise TypeError(f"Unknown capture mode: {mode!r}")
        return validate_rectangle(rect)

    def _fullscreen(self) -> Rectangle:
        rect = resolve_fullscreen(self.display.virtual_screen())
        self.console.info(f"Fullscreen capture: {rect.w}×{rect.h}")
        return rect

    def _region_select(self) -> Rectangle:
        if self.selector is None:
            raise ToolMissing(
                "slop is not installed (required for -s). Install: apt/dnf/pacman install slop"
            )
        self.console.info("Click and drag to select the recording area...")
        self.console.info("(You can switch i3/Sway workspaces before clicking)")
        rect = resolve_region_select(self.selector.select())
        self.console.info(f"Selected area: {rect}")
        return rect

    def _window_click(self) -> Rectangle:
        if self.picker is None:
            raise ToolMissing(
                "xwininfo is not installed (required for -w). Install: apt install x11-utils"
            )
        self.console.info("Click on the window you want to record...")
        raw = self.picker.pick()
        if raw is None:
            raise SelectionCancelled("Window selection cancelled.")
        self.console.info(f'Window: "{raw.title}" — {raw.w}×{raw.h} at +{raw.x},+{raw.y}')

        screen = self.display.virtual_screen()
        if screen is None:
            self.console.warn(
                "Cannot detect screen size for bounds checking. Using raw window geometry."
            )
        else:
            visible = clamp_to_screen(raw, screen.w, screen.h)
            if (visible.x, visible.y, visible.w, visible.h) != (raw.x, raw.y, raw.w, raw.h):
                self.console.warn(f"Window extends off-screen. Clamped to visible area: {visible}")
        rect = resolve_window_click(raw, screen)
        self.console.info(f"Capture region: {rect}")
        return rect

    def _fixed_resolution(self, mode: FixedResolution) -> Rectangle:
        validate_requested_size(mode.w, mode.h)
        monitor = self.display.primary_monitor()
        if monitor is None:
            raise GeometryUnavailable()
        self.console.info(f"Monitor {monitor.name}: {monitor.w}×{monitor.h} at +{monitor.x},+{monitor.y}")
        self.console.info(f"Requested: {mode.w}×{mode.h} (centered)")
        rect = resolve_fixed_resolution(mode.w, mode.h, monitor)
        self.console.info(f"Capture region: {rect}")
        return rect

    def _crop(self, mode: Crop) -> Rectangle:
        monitor = self.display.primary_monitor()
        if monitor is None:
            raise GeometryUnavailable()
        self.console.info(
            f"Monitor {monitor.name}: {monitor.w}×{monitor.h}; crop "
            f"L{mode.left} R{mode.right} T{mode.top} B{mode.bottom}"
        )
        rect = resolve_crop(mode.left, mode.right, mode.top, mode.bottom, monitor)
        self.console.info(f"Capture region: {rect}")
        return rect
