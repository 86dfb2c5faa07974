"""Tests for screencast.regions - capture rectangle resolution.

The per-mode resolvers are pure, so most tests feed them geometry
directly; RegionResolver tests use the fakes from conftest.
"""

import sys
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import FakeDisplay, FakePicker, FakeSelector, console_text
from screencast import regions
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
from screencast.tools import WindowGeometry
from screencast.types import (
    Crop,
    FixedResolution,
    Fullscreen,
    MonitorInfo,
    Rectangle,
    RegionSelect,
    WindowClick,
)

MONITOR_1080P = MonitorInfo(0, 0, 1920, 1080, "DP-1")
SCREEN_1080P = Rectangle(0, 0, 1920, 1080)


class TestEvenFloor:
    """Tests for even_floor."""

    def test_even_unchanged(self):
        """Even numbers are returned unchanged."""
        assert regions.even_floor(1280) == 1280

    def test_odd_rounded_down(self):
        """Odd numbers lose one."""
        assert regions.even_floor(721) == 720

    @given(st.integers(min_value=0, max_value=100000))
    @settings(max_examples=20)
    def test_result_even_and_close(self, n: int):
        """Property: result is even and at most one below the input."""
        result = regions.even_floor(n)
        assert result % 2 == 0
        assert n - 1 <= result <= n


class TestFullscreen:
    """Tests for resolve_fullscreen."""

    def test_whole_screen(self):
        """Covers the screen from the origin."""
        assert regions.resolve_fullscreen(SCREEN_1080P) == Rectangle(0, 0, 1920, 1080)

    def test_odd_screen_rounded(self):
        """Odd screen dimensions are rounded down to even."""
        assert regions.resolve_fullscreen(Rectangle(0, 0, 1366, 767)) == Rectangle(0, 0, 1366, 766)

    def test_no_screen(self):
        """Missing geometry is an error."""
        with pytest.raises(GeometryUnavailable, match="xrandr, xwininfo, or xdpyinfo"):
            regions.resolve_fullscreen(None)


class TestParseSelection:
    """Tests for parse_selection and resolve_region_select."""

    def test_valid_output(self):
        """Parses four integers."""
        assert regions.parse_selection("10 20 300 200") == Rectangle(10, 20, 300, 200)

    def test_trailing_newline(self):
        """Surrounding whitespace is ignored."""
        assert regions.parse_selection(" 10 20 300 200\n") == Rectangle(10, 20, 300, 200)

    def test_empty_is_cancel(self):
        """Empty output means the operator cancelled."""
        with pytest.raises(SelectionCancelled):
            regions.parse_selection("")
        with pytest.raises(SelectionCancelled):
            regions.parse_selection(None)

    def test_cancel_exit_code_zero(self):
        """Cancellation is a normal exit."""
        with pytest.raises(SelectionCancelled) as exc_info:
            regions.parse_selection("   ")
        assert exc_info.value.exit_code == 0

    @pytest.mark.parametrize("raw", ["10 20 300", "a b c d", "10 20 -5 200", "1 2 3 4 5"])
    def test_garbage(self, raw):
        """Anything but four non-negative integers is invalid."""
        with pytest.raises(InvalidToolOutput):
            regions.parse_selection(raw)

    def test_select_rounds_to_even(self):
        """Selected size is rounded down to even, origin kept."""
        assert regions.resolve_region_select("11 21 301 201") == Rectangle(11, 21, 300, 200)

    def test_select_too_small(self):
        """Areas under 16x16 are rejected."""
        with pytest.raises(RegionTooSmall):
            regions.resolve_region_select("0 0 15 100")


class TestClampToScreen:
    """Tests for clamp_to_screen."""

    def test_inside_unchanged(self):
        """A fully visible window is returned as-is."""
        raw = WindowGeometry(100, 100, 800, 600)
        assert regions.clamp_to_screen(raw, 1920, 1080) == Rectangle(100, 100, 800, 600)

    def test_left_overflow(self):
        """Negative x moves to 0 and shrinks the width."""
        raw = WindowGeometry(-50, 10, 800, 600)
        assert regions.clamp_to_screen(raw, 1920, 1080) == Rectangle(0, 10, 750, 600)

    def test_right_and_bottom_overflow(self):
        """Overflow past the far edges shrinks the size."""
        raw = WindowGeometry(1500, 900, 800, 600)
        assert regions.clamp_to_screen(raw, 1920, 1080) == Rectangle(1500, 900, 420, 180)

    def test_entirely_off_screen(self):
        """A window with nothing visible is an error."""
        with pytest.raises(WindowOffScreen):
            regions.clamp_to_screen(WindowGeometry(-900, 0, 800, 600), 1920, 1080)
        with pytest.raises(WindowOffScreen):
            regions.clamp_to_screen(WindowGeometry(2000, 0, 800, 600), 1920, 1080)

    @given(
        st.integers(min_value=-2000, max_value=2000),
        st.integers(min_value=-2000, max_value=2000),
        st.integers(min_value=1, max_value=4000),
        st.integers(min_value=1, max_value=4000),
    )
    @settings(max_examples=20)
    def test_clamp_idempotent_and_inside(self, x, y, w, h):
        """Property: clamped rectangles lie on screen and clamp to themselves."""
        try:
            first = regions.clamp_to_screen(WindowGeometry(x, y, w, h), 1920, 1080)
        except WindowOffScreen:
            return
        assert first.x >= 0 and first.y >= 0
        assert first.x + first.w <= 1920
        assert first.y + first.h <= 1080
        again = regions.clamp_to_screen(
            WindowGeometry(first.x, first.y, first.w, first.h), 1920, 1080
        )
        assert again == first


class TestResolveWindowClick:
    """Tests for resolve_window_click."""

    def test_clamped_and_even(self):
        """Clamped window keeps its even size."""
        raw = WindowGeometry(-50, 10, 800, 600)
        assert regions.resolve_window_click(raw, SCREEN_1080P) == Rectangle(0, 10, 750, 600)

    def test_odd_size_rounded(self):
        """Odd window dimensions are rounded down."""
        raw = WindowGeometry(10, 10, 801, 601)
        assert regions.resolve_window_click(raw, SCREEN_1080P) == Rectangle(10, 10, 800, 600)

    def test_without_screen_floors_origin(self):
        """Without screen bounds only a negative origin is corrected."""
        raw = WindowGeometry(-5, -7, 801, 600)
        assert regions.resolve_window_click(raw, None) == Rectangle(0, 0, 800, 600)

    def test_sliver_too_small(self):
        """A barely visible window is too small to record."""
        raw = WindowGeometry(1910, 0, 800, 600)
        with pytest.raises(RegionTooSmall):
            regions.resolve_window_click(raw, SCREEN_1080P)


class TestFixedResolution:
    """Tests for parse_resolution, validate_requested_size and centering."""

    @pytest.mark.parametrize("text", ["1280x720", "1280X720", "1280×720", " 1280 x 720 "])
    def test_parse_separators(self, text):
        """Accepts x, X and the multiplication sign."""
        assert regions.parse_resolution(text) == FixedResolution(1280, 720)

    @pytest.mark.parametrize("text", ["1280", "1280x", "x720", "12.5x720", "-1280x720", ""])
    def test_parse_invalid(self, text):
        """Rejects malformed sizes."""
        with pytest.raises(OutOfRange, match="Invalid resolution format"):
            regions.parse_resolution(text)

    def test_validate_rounds_to_even(self):
        """Odd requests are rounded down to even."""
        assert regions.validate_requested_size(1281, 721) == (1280, 720)

    def test_validate_too_small(self):
        """Below 16 in either dimension is out of range."""
        with pytest.raises(OutOfRange, match="too small"):
            regions.validate_requested_size(15, 720)

    def test_validate_too_large(self):
        """Beyond 8K is out of range."""
        with pytest.raises(OutOfRange, match="8K"):
            regions.validate_requested_size(7681, 720)
        with pytest.raises(OutOfRange, match="8K"):
            regions.validate_requested_size(1280, 4321)

    def test_validate_bounds_inclusive(self):
        """16x16 and 7680x4320 are both accepted."""
        assert regions.validate_requested_size(16, 16) == (16, 16)
        assert regions.validate_requested_size(7680, 4320) == (7680, 4320)

    def test_centered_on_monitor(self):
        """1281x721 on a 1080p monitor becomes 1280x720 at +320,+180."""
        rect = regions.resolve_fixed_resolution(1281, 721, MONITOR_1080P)
        assert rect == Rectangle(320, 180, 1280, 720)

    def test_centered_on_offset_monitor(self):
        """Centering is relative to the monitor origin."""
        monitor = MonitorInfo(1920, 0, 2560, 1440, "HDMI-1")
        rect = regions.resolve_fixed_resolution(1920, 1080, monitor)
        assert rect == Rectangle(1920 + 320, 180, 1920, 1080)

    def test_exactly_monitor_size(self):
        """A request equal to the monitor covers it."""
        assert regions.resolve_fixed_resolution(1920, 1080, MONITOR_1080P) == Rectangle(0, 0, 1920, 1080)

    def test_exceeds_monitor(self):
        """Requests larger than the monitor are rejected."""
        with pytest.raises(ResolutionExceedsMonitor, match="width 2560"):
            regions.resolve_fixed_resolution(2560, 720, MONITOR_1080P)
        with pytest.raises(ResolutionExceedsMonitor, match="height 1440"):
            regions.resolve_fixed_resolution(1280, 1440, MONITOR_1080P)

    def test_no_monitor(self):
        """Missing monitor geometry is an error."""
        with pytest.raises(GeometryUnavailable):
            regions.resolve_fixed_resolution(1280, 720, None)

    @given(
        st.integers(min_value=16, max_value=1920),
        st.integers(min_value=16, max_value=1080),
    )
    @settings(max_examples=20)
    def test_centered_even_and_inside(self, w, h):
        """Property: result is even, inside the monitor, and centered."""
        rect = regions.resolve_fixed_resolution(w, h, MONITOR_1080P)
        assert rect.w % 2 == 0 and rect.h % 2 == 0
        assert rect.w >= 16 and rect.h >= 16
        assert rect.x + rect.w <= 1920 and rect.y + rect.h <= 1080
        assert rect.x == (1920 - rect.w) // 2
        assert rect.y == (1080 - rect.h) // 2


class TestCrop:
    """Tests for parse_crop and resolve_crop."""

    def test_parse(self):
        """Parses four comma-separated margins."""
        assert regions.parse_crop("0,0,32,0") == Crop(0, 0, 32, 0)
        assert regions.parse_crop(" 1, 2 ,3,4") == Crop(1, 2, 3, 4)

    @pytest.mark.parametrize("text", ["0,0,32", "a,b,c,d", "0,0,-1,0", "0;0;0;0"])
    def test_parse_invalid(self, text):
        """Rejects malformed margins."""
        with pytest.raises(OutOfRange):
            regions.parse_crop(text)

    def test_crop_on_second_monitor(self):
        """Margins are applied relative to the monitor origin."""
        monitor = MonitorInfo(1920, 0, 1920, 1080, "HDMI-1")
        rect = regions.resolve_crop(100, 100, 100, 100, monitor)
        assert rect == Rectangle(2020, 100, 1720, 880)

    def test_crop_rounds_after_subtraction(self):
        """Odd remainders are rounded down; the origin stays exact."""
        rect = regions.resolve_crop(1, 0, 3, 0, MONITOR_1080P)
        assert rect == Rectangle(1, 3, 1918, 1076)

    def test_no_margins(self):
        """Zero margins cover the monitor."""
        assert regions.resolve_crop(0, 0, 0, 0, MONITOR_1080P) == Rectangle(0, 0, 1920, 1080)

    def test_too_aggressive_width(self):
        """Horizontal margins leaving under 16px are rejected."""
        with pytest.raises(CropTooAggressive, match="Left\\+right"):
            regions.resolve_crop(960, 950, 0, 0, MONITOR_1080P)

    def test_too_aggressive_height(self):
        """Vertical margins leaving under 16px are rejected."""
        with pytest.raises(CropTooAggressive, match="Top\\+bottom"):
            regions.resolve_crop(0, 0, 1000, 70, MONITOR_1080P)

    def test_negative_margin(self):
        """Negative margins are out of range."""
        with pytest.raises(OutOfRange):
            regions.resolve_crop(-1, 0, 0, 0, MONITOR_1080P)

    @given(
        st.integers(min_value=0, max_value=900),
        st.integers(min_value=0, max_value=900),
        st.integers(min_value=0, max_value=500),
        st.integers(min_value=0, max_value=500),
    )
    @settings(max_examples=20)
    def test_crop_formula(self, left, right, top, bottom):
        """Property: origin is shifted by left/top, size is the even remainder."""
        rect = regions.resolve_crop(left, right, top, bottom, MONITOR_1080P)
        assert (rect.x, rect.y) == (left, top)
        assert rect.w == regions.even_floor(1920 - left - right)
        assert rect.h == regions.even_floor(1080 - top - bottom)


class TestValidateRectangle:
    """Tests for validate_rectangle."""

    def test_valid(self):
        """A good rectangle passes through."""
        rect = Rectangle(0, 0, 1280, 720)
        assert regions.validate_rectangle(rect) is rect

    @pytest.mark.parametrize("rect", [
        Rectangle(-1, 0, 1280, 720),
        Rectangle(0, 0, 14, 720),
        Rectangle(0, 0, 1281, 720),
        Rectangle(0, 0, 1280, 719),
    ])
    def test_invalid(self, rect):
        """Negative origin, tiny or odd sizes are rejected."""
        with pytest.raises(InvalidGeometry):
            regions.validate_rectangle(rect)


class TestRegionResolver:
    """Tests for RegionResolver dispatch and status output."""

    def test_fullscreen(self, console, display):
        """Fullscreen uses the virtual screen."""
        rect = regions.RegionResolver(display, console).resolve(Fullscreen())
        assert rect == Rectangle(0, 0, 1920, 1080)
        assert "Fullscreen capture: 1920×1080" in console_text(console)

    def test_fullscreen_no_geometry(self, console):
        """No geometry aborts fullscreen."""
        resolver = regions.RegionResolver(FakeDisplay(screen=None), console)
        with pytest.raises(GeometryUnavailable):
            resolver.resolve(Fullscreen())

    def test_region_select(self, console, display):
        """Selector output becomes the capture area."""
        resolver = regions.RegionResolver(display, console, selector=FakeSelector("100 50 641 481"))
        assert resolver.resolve(RegionSelect()) == Rectangle(100, 50, 640, 480)
        assert "Selected area: 640×480 at +100,+50" in console_text(console)

    def test_region_select_cancelled(self, console, display):
        """Empty selector output is a cancellation."""
        resolver = regions.RegionResolver(display, console, selector=FakeSelector(""))
        with pytest.raises(SelectionCancelled):
            resolver.resolve(RegionSelect())

    def test_region_select_without_selector(self, console, display):
        """No selector available is a missing tool."""
        with pytest.raises(ToolMissing, match="slop"):
            regions.RegionResolver(display, console).resolve(RegionSelect())

    def test_window_clamped_with_warning(self, console, display):
        """Off-screen windows are clamped and a warning is shown."""
        picker = FakePicker(WindowGeometry(-50, 10, 800, 600, "Terminal"))
        rect = regions.RegionResolver(display, console, picker=picker).resolve(WindowClick())
        assert rect == Rectangle(0, 10, 750, 600)
        text = console_text(console)
        assert "Window extends off-screen" in text
        assert '"Terminal"' in text

    def test_window_inside_no_warning(self, console, display):
        """On-screen windows do not warn."""
        picker = FakePicker(WindowGeometry(10, 10, 800, 600))
        regions.RegionResolver(display, console, picker=picker).resolve(WindowClick())
        assert "WARN" not in console_text(console)

    def test_window_without_screen(self, console):
        """Without screen size the raw geometry is used with a warning."""
        picker = FakePicker(WindowGeometry(-4, 6, 800, 600))
        resolver = regions.RegionResolver(FakeDisplay(screen=None), console, picker=picker)
        assert resolver.resolve(WindowClick()) == Rectangle(0, 6, 800, 600)
        assert "Using raw window geometry" in console_text(console)

    def test_window_cancelled(self, console, display):
        """A picker returning None is a cancellation."""
        resolver = regions.RegionResolver(display, console, picker=FakePicker(None))
        with pytest.raises(SelectionCancelled, match="Window selection cancelled"):
            resolver.resolve(WindowClick())

    def test_window_without_picker(self, console, display):
        """No picker available is a missing tool."""
        with pytest.raises(ToolMissing, match="xwininfo"):
            regions.RegionResolver(display, console).resolve(WindowClick())

    def test_fixed_resolution_uses_primary_monitor(self, console):
        """Fixed resolution centers on the primary monitor."""
        display = FakeDisplay(monitor=MonitorInfo(1920, 0, 1920, 1080, "HDMI-1"))
        rect = regions.RegionResolver(display, console).resolve(FixedResolution(1281, 721))
        assert rect == Rectangle(2240, 180, 1280, 720)
        assert "Monitor HDMI-1" in console_text(console)
        assert "primary_monitor" in display.calls

    def test_fixed_resolution_out_of_range_before_geometry(self, console):
        """Size limits are checked before the display is queried."""
        display = FakeDisplay()
        with pytest.raises(OutOfRange):
            regions.RegionResolver(display, console).resolve(FixedResolution(8000, 720))
        assert display.calls == []

    def test_crop(self, console):
        """Crop trims the primary monitor."""
        display = FakeDisplay(monitor=MonitorInfo(1920, 0, 1920, 1080, "HDMI-1"))
        rect = regions.RegionResolver(display, console).resolve(Crop(100, 100, 100, 100))
        assert rect == Rectangle(2020, 100, 1720, 880)

    def test_crop_no_monitor(self, console):
        """Crop without monitor geometry aborts."""
        resolver = regions.RegionResolver(FakeDisplay(monitor=None), console)
        with pytest.raises(GeometryUnavailable):
            resolver.resolve(Crop(0, 0, 0, 0))

    def test_unknown_mode(self, console, display):
        """Unknown mode objects are a programming error."""
        with pytest.raises(TypeError):
            regions.RegionResolver(display, console).resolve("full")
