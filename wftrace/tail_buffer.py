"""Trim terminal output so that it fits a box of lines and columns."""

from __future__ import annotations

import re

# ESC or the 8-bit CSI (U+009B, UTF-8 encoded) followed by a control sequence.
_ANSI = re.compile(
    rb"(?:\x1b|\xc2\x9b)[\[\]()#;?]*"
    rb"(?:(?:(?:[a-zA-Z\d]*(?:;[a-zA-Z\d]*)*)?\x07)"
    rb"|(?:(?:\d{1,4}(?:;\d{0,4})*)?[\dA-PRZcf-ntqry=><~]))"
)


def strip_ansi(data: bytes) -> bytes:
    """Remove all ANSI escape codes."""
    return _ANSI.sub(b"", data)


def count_print_width(data: bytes) -> int:
    """Count the characters printed once ANSI codes are removed."""
    # surrogateescape yields one character per invalid byte.
    return len(strip_ansi(data).decode("utf-8", errors="surrogateescape"))


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def line_height(line: bytes, max_width: int) -> int:
    """Number of terminal rows a line takes at the given width."""
    return 1 + _trunc_div(count_print_width(line) - 1, max_width)


def reverse_lines(data: bytes) -> list[bytes]:
    """Split on newlines and return the lines last first."""
    return data.split(b"\n")[::-1]


def tail_box_bound(data: bytes, max_lines: int, max_width: int) -> tuple[bytes, int]:
    """Keep the tail of ``data`` that fits ``max_lines`` rows of ``max_width``.

    A ``max_lines`` of 0 means no limit and a ``max_width`` of 0 means no
    wrapping. Lines are never cut in half. Returns the kept bytes and the
    number of rows they take.
    """
    kept: list[bytes] = []
    rows = 0
    for line in reverse_lines(data):
        height = line_height(line, max_width) if max_width > 0 else 1
        if max_lines > 0 and rows + height > max_lines:
            break
        kept.append(line)
        rows += height
    kept.reverse()
    return b"\n".join(kept), rows