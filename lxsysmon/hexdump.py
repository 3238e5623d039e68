"""Render binary data as a hex dump for debugging."""

from __future__ import annotations

import sys
from typing import TextIO

_BYTES_PER_LINE = 16
_HALF_LINE = 8


def _printable(byte: int) -> str:
    return chr(byte) if 0x20 <= byte <= 0x7E else "."


def _format_line(offset: int, chunk: bytes) -> str:
    parts = [f"{offset:08x}  "]
    for position, byte in enumerate(chunk):
        parts.append(f"0x{byte:02x} ")
        if position == _HALF_LINE - 1:
            parts.append(" ")
    if len(chunk) == _BYTES_PER_LINE:
        left = "".join(_printable(b) for b in chunk[:_HALF_LINE])
        right = "".join(_printable(b) for b in chunk[_HALF_LINE:])
        parts.append(f"{left} {right}\n")
    return "".join(parts)


def format_hexdump(data) -> str:
    """Return the hex dump of ``data`` as a string.

    Full 16-byte lines end with their printable characters; a trailing
    partial line shows only the hex bytes.
    """
    if data is None:
        raise ValueError("hexdump invalid params")
    raw = bytes(data)
    lines = (
        _format_line(offset, raw[offset:offset + _BYTES_PER_LINE])
        for offset in range(0, len(raw), _BYTES_PER_LINE)
    )
    return "\n" + "".join(lines) + "\n"


def hexdump(data, file: TextIO | None = None) -> None:
    """Write the hex dump of ``data`` to ``file`` (standard output by default)."""
    text = format_hexdump(data)
    (file if file is not None else sys.stdout).write(text)