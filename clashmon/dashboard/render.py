"""
Dashboard rendering.

Maps a Snapshot to a rich renderable. No side effects: the caller decides
when and where to draw.

Layout:
    +--------------------------+-------------+
    | Logs (66%)               | Proxies     |
    |                          | (34%)       |
    +--------------------+-----+-------------+
    | Upload sparkline   | Download sparkline|
    +--------------------+-------------------+
"""

from typing import List, Sequence

from rich.console import Console, ConsoleOptions, RenderResult
from rich.layout import Layout
from rich.panel import Panel
from rich.text import Text

from clashmon.dashboard.events import ProxyRow
from clashmon.dashboard.state import Snapshot

KB = 1024
MB = 1024 * 1024

# Index = filled eighths of one character cell
BAR_CHARS = " ▁▂▃▄▅▆▇█"

FAST_DELAY_MS = 500


def format_speed(speed: int) -> str:
    """Human readable rate: B below 1 KB, KB below 1 MB, MB above."""
    if speed < KB:
        return f"{speed} B"
    elif speed < MB:
        return f"{speed / KB:.1f} KB"
    return f"{speed / MB:.1f} MB"


def delay_style(delay: str) -> str:
    """Green under 500ms, red for no data, yellow otherwise."""
    try:
        value = int(delay)
    except ValueError:
        value = 0

    if 0 < value < FAST_DELAY_MS:
        return "green"
    elif value == 0:
        return "red"
    return "yellow"


def sparkline_rows(values: Sequence[int], width: int, height: int = 1) -> List[str]:
    """
    Render the newest ``width`` samples as a bar chart of ``height`` rows.

    Bars are scaled against the largest visible sample; zero samples are
    blank columns. Rows are returned top first.
    """
    if width <= 0 or height <= 0:
        return []

    window = list(values)[-width:]
    peak = max(window, default=0)
    steps = height * 8
    levels = [round(v / peak * steps) if peak > 0 else 0 for v in window]

    rows = []
    for row in range(height - 1, -1, -1):
        cells = []
        for level in levels:
            filled = min(max(level - row * 8, 0), 8)
            cells.append(BAR_CHARS[filled])
        rows.append("".join(cells))
    return rows


class Sparkline:
    """Sparkline that fills whatever region rich gives it."""

    def __init__(self, data: Sequence[int], style: str = "green"):
        self.data = data
        self.style = style

    def __rich_console__(self, console: Console, options: ConsoleOptions) -> RenderResult:
        height = options.height or 1
        for row in sparkline_rows(self.data, options.max_width, height):
            yield Text(row, style=self.style, no_wrap=True)


class LogTail:
    """The newest log lines that fit the region, oldest at the top."""

    def __init__(self, lines: Sequence[str]):
        self.lines = lines

    def __rich_console__(self, console: Console, options: ConsoleOptions) -> RenderResult:
        height = options.height if options.height is not None else len(self.lines)
        if height <= 0:
            return
        for line in list(self.lines)[-height:]:
            yield Text(line, no_wrap=True, overflow="ellipsis")


def _roster_text(rows: Sequence[ProxyRow]) -> Text:
    text = Text(no_wrap=True, overflow="ellipsis")
    for i, (name, now, delay) in enumerate(rows):
        if i:
            text.append("\n")
        text.append(f"{name}: ", style="bold")
        text.append(f"{now} ")
        text.append(f"({delay}ms)", style=delay_style(delay))
    return text


def render_frame(snapshot: Snapshot) -> Layout:
    """Build one full dashboard frame from the snapshot."""
    layout = Layout()

    layout.split_column(
        Layout(name="top", ratio=66),
        Layout(name="bottom", ratio=34)
    )
    layout["top"].split_row(
        Layout(name="logs", ratio=66),
        Layout(name="proxies", ratio=34)
    )
    layout["bottom"].split_row(
        Layout(name="upload", ratio=1),
        Layout(name="download", ratio=1)
    )

    layout["logs"].update(Panel(LogTail(snapshot.log_lines), title="Logs"))
    layout["proxies"].update(Panel(_roster_text(snapshot.proxy_rows), title="Proxies"))
    layout["upload"].update(Panel(
        Sparkline(snapshot.upload_history),
        title=f"Upload: {format_speed(snapshot.current_upload)}/s"
    ))
    layout["download"].update(Panel(
        Sparkline(snapshot.download_history),
        title=f"Download: {format_speed(snapshot.current_download)}/s"
    ))

    return layout
