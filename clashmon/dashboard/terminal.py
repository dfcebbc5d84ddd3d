"""
Terminal ownership for the dashboard (POSIX).

TerminalSession acquires the terminal (cbreak input, alternate screen,
hidden cursor) and gives it back on every exit path. KeyReader turns raw
stdin bytes into KeyEvents without blocking the event loop.
"""

import asyncio
import os
import sys
import termios
import tty
from typing import List, Optional

from rich.console import Console, RenderableType
from rich.live import Live

from clashmon.core.exceptions import TerminalError
from clashmon.core.logger import get_logger
from clashmon.dashboard.events import ESCAPE, KeyEvent

logger = get_logger(__name__)

ESC = 0x1b

CSI_KEYS = {
    b"A": "up",
    b"B": "down",
    b"C": "right",
    b"D": "left",
    b"H": "home",
    b"F": "end",
}

CONTROL_KEYS = {
    0x09: "tab",
    0x0a: "enter",
    0x0d: "enter",
    0x7f: "backspace",
    0x08: "backspace",
}


def decode_keys(data: bytes) -> List[KeyEvent]:
    """
    Decode one read from a cbreak-mode terminal into key events.

    Handles printable characters, Enter, Tab, Backspace, a lone ESC and
    CSI arrow/home/end sequences. Terminals in this mode report presses
    only, so every event is a PRESS. Unknown escape sequences are dropped.
    """
    keys = []
    i = 0
    while i < len(data):
        byte = data[i]
        if byte == ESC:
            if i + 1 >= len(data):
                keys.append(KeyEvent(ESCAPE))
                i += 1
                continue
            if data[i + 1:i + 2] in (b"[", b"O"):
                # CSI / SS3: parameters then a final byte in 0x40-0x7e
                j = i + 2
                while j < len(data) and not 0x40 <= data[j] <= 0x7e:
                    j += 1
                final = data[j:j + 1]
                if final in CSI_KEYS:
                    keys.append(KeyEvent(CSI_KEYS[final]))
                i = j + 1
                continue
            keys.append(KeyEvent(ESCAPE))
            i += 1
            continue

        if byte in CONTROL_KEYS:
            keys.append(KeyEvent(CONTROL_KEYS[byte]))
            i += 1
            continue

        # Decode one UTF-8 character
        width = 1
        if byte >= 0xf0:
            width = 4
        elif byte >= 0xe0:
            width = 3
        elif byte >= 0xc0:
            width = 2
        char = data[i:i + width].decode("utf-8", errors="replace")
        if char.isprintable():
            keys.append(KeyEvent(char))
        i += width
    return keys


def incomplete_utf8_tail(data: bytes) -> int:
    """Number of trailing bytes that start a UTF-8 character not yet complete."""
    for back in range(1, min(3, len(data)) + 1):
        byte = data[-back]
        if byte & 0xc0 == 0x80:
            continue
        if byte >= 0xf0:
            width = 4
        elif byte >= 0xe0:
            width = 3
        elif byte >= 0xc0:
            width = 2
        else:
            return 0
        return back if width > back else 0
    return 0


class KeyReader:
    """
    Async iterator of KeyEvents read from a file descriptor.

    Uses ``loop.add_reader`` so reads never block the event loop.
    Iteration ends at EOF or after close().
    """

    def __init__(self, fd: Optional[int] = None):
        self.fd = sys.stdin.fileno() if fd is None else fd
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._buffered: List[KeyEvent] = []
        self._partial = b""
        self._eof = False

    def __aiter__(self):
        return self

    async def __anext__(self) -> KeyEvent:
        while not self._buffered:
            if self._eof:
                raise StopAsyncIteration
            if self._queue is None:
                self._start()
            data = await self._queue.get()
            if not data:
                self._eof = True
                continue
            data = self._partial + data
            cut = len(data) - incomplete_utf8_tail(data)
            self._partial = data[cut:]
            self._buffered.extend(decode_keys(data[:cut]))
        return self._buffered.pop(0)

    def _start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._loop.add_reader(self.fd, self._on_readable)

    def _on_readable(self) -> None:
        try:
            data = os.read(self.fd, 1024)
        except OSError as e:
            logger.debug(f"Key read failed: {e}")
            data = b""
        if not data:
            self._stop_reading()
        self._queue.put_nowait(data)

    def _stop_reading(self) -> None:
        if self._loop is not None:
            self._loop.remove_reader(self.fd)
            self._loop = None

    def close(self) -> None:
        """Stop reading. Pending and future reads end iteration."""
        self._stop_reading()
        if self._queue is None:
            self._eof = True
        elif not self._eof:
            self._queue.put_nowait(b"")


class TerminalSession:
    """
    Scoped ownership of the terminal.

    On enter: cbreak input (when stdin is a tty) and a full-screen rich
    Live display. On exit: the Live display is stopped and the saved tty
    attributes are restored, both attempted even if one fails.

    Example:
        >>> with TerminalSession() as term:
        ...     term.draw(render_frame(snapshot))
    """

    def __init__(self, console: Optional[Console] = None, stdin=None):
        """
        Initialize terminal session.

        Args:
            console: Console to draw on (default: a new stdout console)
            stdin: Input stream whose tty mode is switched (default: sys.stdin)
        """
        self.console = console or Console()
        self.stdin = stdin if stdin is not None else sys.stdin
        self._fd: Optional[int] = None
        self._saved_attrs = None
        self._live: Optional[Live] = None

    @property
    def active(self) -> bool:
        return self._live is not None

    def __enter__(self) -> "TerminalSession":
        try:
            if self.stdin.isatty():
                self._fd = self.stdin.fileno()
                self._saved_attrs = termios.tcgetattr(self._fd)
                tty.setcbreak(self._fd)

            self._live = Live(
                console=self.console,
                screen=True,
                auto_refresh=False,
                redirect_stdout=False,
                redirect_stderr=False
            )
            self._live.start()
        except Exception as e:
            try:
                self.restore()
            except TerminalError as restore_error:
                logger.error(f"Terminal restore failed: {restore_error}")
            if isinstance(e, (termios.error, OSError)):
                raise TerminalError(f"Failed to set up terminal: {e}") from e
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            self.restore()
        except TerminalError:
            if exc_type is None:
                raise
            logger.error("Terminal restore failed while handling another error")
        return False

    def draw(self, renderable: RenderableType) -> None:
        """Replace the screen contents with ``renderable``."""
        if self._live is None:
            raise TerminalError("Terminal session is not active")
        self._live.update(renderable, refresh=True)

    def restore(self) -> None:
        """
        Leave the alternate screen and restore tty attributes.

        Raises:
            TerminalError: If any restore step failed (after all ran)
        """
        errors = []

        if self._live is not None:
            live, self._live = self._live, None
            try:
                live.stop()
            except Exception as e:
                errors.append(f"screen: {e}")

        if self._fd is not None and self._saved_attrs is not None:
            fd, attrs = self._fd, self._saved_attrs
            self._fd = self._saved_attrs = None
            try:
                termios.tcsetattr(fd, termios.TCSADRAIN, attrs)
            except (termios.error, OSError) as e:
                errors.append(f"tty mode: {e}")

        if errors:
            raise TerminalError("Failed to restore terminal: " + "; ".join(errors))
