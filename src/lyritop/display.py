"""Compose the displayed text and write it to the terminal.

Two sinks are provided:
  • TerminalSink: one status line redrawn in place (ANSI, hidden cursor)
  • PipeSink: one stdout line per change, for bars and scripts
"""

from __future__ import annotations

import sys
from typing import TextIO

# ── ANSI escape helpers ──────────────────────────────────────────────────────

_ESC = "\033["
_RESET = f"{_ESC}0m"
_BOLD = f"{_ESC}1m"

_HIDE_CURSOR = f"{_ESC}?25l"
_SHOW_CURSOR = f"{_ESC}?25h"
_EL = f"{_ESC}K"  # erase to end of line

_SYNC_START = "\033[?2026h"
_SYNC_END = "\033[?2026l"

TRANSLATION_SEPARATOR = "  "


# ── Text composition ─────────────────────────────────────────────────────────

def format_time(micros: int) -> str:
    """Format microseconds as ``m:ss`` (no hour component)."""
    m, s = divmod(max(0, micros) // 1_000_000, 60)
    return f"{m}:{s:02d}"


def translation_only(lyric: str) -> str:
    """Drop the original-language segment of a bilingual lyric line.

    Bilingual lines put the translation after a double space. Lines with a
    single segment are returned unchanged.
    """
    parts = lyric.split(TRANSLATION_SEPARATOR)
    if len(parts) > 1:
        return TRANSLATION_SEPARATOR.join(parts[1:])
    return lyric


def compose_text(
    title: str,
    lyric: str | None,
    position_us: int | None = None,
    duration_us: int = 0,
    only_translation: bool = False,
) -> str:
    """Build the text shown for the selected track.

    The lyric line wins when there is one; otherwise the title, with
    ``position / duration`` appended when both are known.
    """
    if lyric:
        return translation_only(lyric) if only_translation else lyric
    if position_us is not None and duration_us > 0:
        return f"{title} - {format_time(position_us)} / {format_time(duration_us)}"
    return title


# ── Sinks ────────────────────────────────────────────────────────────────────

class PipeSink:
    """Print each new text on its own line. Repeated text is not reprinted."""

    def __init__(self, out: TextIO | None = None) -> None:
        self._out = out or sys.stdout
        self._last: str | None = None

    def __call__(self, text: str) -> None:
        if text == self._last:
            return
        self._last = text
        print(text, file=self._out, flush=True)

    def close(self) -> None:
        pass


class TerminalSink:
    """Redraw a single line in place; an empty text clears it."""

    def __init__(self, out: TextIO | None = None) -> None:
        self._out = out or sys.stdout
        self._last: str | None = None
        self._out.write(_HIDE_CURSOR)
        self._out.flush()

    def __call__(self, text: str) -> None:
        if text == self._last:
            return
        self._last = text
        body = f"{_BOLD}{text}{_RESET}" if text else ""
        self._out.write(f"{_SYNC_START}\r{body}{_EL}{_SYNC_END}")
        self._out.flush()

    def close(self) -> None:
        self._out.write(f"\r{_EL}{_SHOW_CURSOR}")
        self._out.flush()

