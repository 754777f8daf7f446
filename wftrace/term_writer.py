"""A terminal writer that redraws its output in place."""

from __future__ import annotations

import io
import os
import sys
import threading
from typing import BinaryIO

from wftrace.tail_buffer import tail_box_bound

ANSI_MOVE_CURSOR_START_LINE = "\x1b[0G"
ANSI_ERASE_TO_END = "\x1b[0J"


def move_cursor_up(lines: int) -> str:
    """ANSI code moving the cursor up by ``lines`` rows."""
    return f"\x1b[{lines}A"


def get_terminal_size() -> tuple[int, int]:
    """Return the (columns, rows) of the terminal on standard output.

    When it cannot be determined this is (0, 0), or (80, 25) on Windows.
    """
    try:
        size = os.get_terminal_size(1)
    except (OSError, ValueError):
        return (80, 25) if sys.platform == "win32" else (0, 0)
    return size.columns, size.lines


class TermWriter:
    """Buffers output and, on flush, replaces what was printed last time.

    Output can be limited to what fits in the terminal's size.
    """

    def __init__(self, out: BinaryIO):
        self._out = out
        self._buf = io.BytesIO()
        self._lock = threading.Lock()
        self._line_count = 0
        self._width = 0
        self._height = 0
        self.with_terminal_size()

    @property
    def size(self) -> tuple[int, int]:
        """The (width, height) used to bound output."""
        return self._width, self._height

    def with_size(self, width: int, height: int) -> TermWriter:
        """Set the box size; non-positive values mean no limit."""
        self._width = max(width, 0)
        self._height = max(height, 0)
        return self

    def with_terminal_size(self) -> TermWriter:
        """Set the box size to that of the terminal."""
        return self.with_size(*get_terminal_size())

    def write(self, data: bytes) -> int:
        """Add bytes to the buffer."""
        with self._lock:
            return self._buf.write(data)

    def write_line(self, s: str) -> int:
        """Add a line of text to the buffer."""
        return self.write(s.encode("utf-8") + b"\n")

    def _clear_lines(self) -> None:
        if self._line_count == 0:
            return
        codes = ""
        if self._line_count > 1:
            codes += move_cursor_up(self._line_count - 1)
        codes += ANSI_MOVE_CURSOR_START_LINE + ANSI_ERASE_TO_END
        self._out.write(codes.encode("ascii"))

    def flush(self, trim: bool) -> None:
        """Erase the previous output and write the buffer, then empty it.

        With ``trim`` only the tail that fits the terminal height is written.
        """
        if self._width < 0:
            raise ValueError(
                f"TermWriter cannot flush without a valid width (current: {self._width})"
            )
        with self._lock:
            content = self._buf.getvalue()
            if not content:
                return
            max_lines = self._height if trim else 0
            tail, lines = tail_box_bound(content, max_lines, self._width)
            self._clear_lines()
            self._line_count = lines
            try:
                self._out.write(tail)
            finally:
                self._buf = io.BytesIO()