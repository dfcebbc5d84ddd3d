"""
Tests for dashboard rendering.
"""

from io import StringIO

import pytest
from rich.console import Console
from rich.layout import Layout

from clashmon.dashboard.events import LogEvent, RosterEvent, TrafficEvent
from clashmon.dashboard.render import (
    LogTail,
    delay_style,
    format_speed,
    render_frame,
    sparkline_rows,
)
from clashmon.dashboard.state import Snapshot


def render_to_text(renderable, width=100, height=30) -> str:
    console = Console(file=StringIO(), width=width, height=height, color_system=None)
    console.print(renderable)
    return console.file.getvalue()


class TestFormatSpeed:
    """Tests for format_speed."""

    @pytest.mark.parametrize("speed,expected", [
        (0, "0 B"),
        (1023, "1023 B"),
        (1024, "1.0 KB"),
        (1536, "1.5 KB"),
        (1024 * 1024, "1.0 MB"),
        (5 * 1024 * 1024 + 512 * 1024, "5.5 MB"),
    ])
    def test_thresholds(self, speed, expected):
        """Test unit boundaries."""
        assert format_speed(speed) == expected


class TestDelayStyle:
    """Tests for delay_style."""

    def test_fast(self):
        assert delay_style("120") == "green"

    def test_no_data(self):
        assert delay_style("0") == "red"

    def test_slow(self):
        assert delay_style("500") == "yellow"
        assert delay_style("1800") == "yellow"

    def test_unparsable(self):
        """Test garbage is treated as no data."""
        assert delay_style("n/a") == "red"


class TestSparklineRows:
    """Tests for sparkline_rows."""

    def test_single_row(self):
        """Test scaling against the window peak."""
        assert sparkline_rows([0, 4, 8], width=3) == [" ▄█"]

    def test_multi_row(self):
        """Test bars spanning two rows, top row first."""
        assert sparkline_rows([0, 8, 16], width=3, height=2) == ["  █", " ██"]

    def test_all_zero(self):
        """Test an idle window renders blank."""
        assert sparkline_rows([0, 0, 0, 0], width=4) == ["    "]

    def test_newest_samples_kept(self):
        """Test narrow regions show the newest samples."""
        assert sparkline_rows([8, 0, 8], width=2) == [" █"]

    def test_fewer_samples_than_width(self):
        """Test short data is not padded."""
        assert sparkline_rows([1], width=10) == ["█"]

    def test_degenerate_region(self):
        assert sparkline_rows([1, 2, 3], width=0) == []
        assert sparkline_rows([1, 2, 3], width=3, height=0) == []


class TestLogTail:
    """Tests for LogTail."""

    def test_shows_newest_lines(self):
        """Test older lines are cut when the region is short."""
        lines = [f"line {i}" for i in range(20)]

        output = render_to_text(Layout(LogTail(lines)), height=5)

        assert "line 15" in output
        assert "line 19" in output
        assert "line 14" not in output


class TestRenderFrame:
    """Tests for render_frame."""

    def test_empty_snapshot(self):
        """Test a fresh snapshot renders all four panels."""
        output = render_to_text(render_frame(Snapshot()))

        assert "Logs" in output
        assert "Proxies" in output
        assert "Upload: 0 B/s" in output
        assert "Download: 0 B/s" in output

    def test_populated_snapshot(self):
        """Test titles and panel contents follow the snapshot."""
        snapshot = Snapshot()
        snapshot.apply(TrafficEvent(up=2048, down=3 * 1024 * 1024))
        snapshot.apply(LogEvent("[TCP] 127.0.0.1 --> example.com:443"))
        snapshot.apply(RosterEvent([("GLOBAL", "Proxy", "0"), ("Proxy", "HK-01", "120")]))

        output = render_to_text(render_frame(snapshot), width=120, height=30)

        assert "Upload: 2.0 KB/s" in output
        assert "Download: 3.0 MB/s" in output
        assert "example.com:443" in output
        assert "GLOBAL: Proxy (0ms)" in output
        assert "Proxy: HK-01 (120ms)" in output
        assert output.index("GLOBAL: Proxy") < output.index("Proxy: HK-01")

    def test_fits_terminal(self):
        """Test the frame never exceeds the terminal height."""
        snapshot = Snapshot()
        for i in range(50):
            snapshot.apply(LogEvent(f"line {i}"))

        output = render_to_text(render_frame(snapshot), width=80, height=24)

        assert len(output.splitlines()) == 24
        assert "line 49" in output
