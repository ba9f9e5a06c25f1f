"""Parse synced (LRC) lyrics and resolve the line showing at a position."""

from __future__ import annotations

import re
from dataclasses import dataclass

_LRC_TAG = re.compile(r"\[(\d+):(\d+)(?:\.(\d+))?\](.*)")


@dataclass(frozen=True)
class LyricLine:
    """A single timed lyric line."""

    timestamp_us: int  # microseconds from start
    text: str

    def __repr__(self) -> str:
        mins, secs = divmod(self.timestamp_us / 1_000_000, 60)
        return f"[{int(mins):02d}:{secs:05.2f}] {self.text}"


Timeline = tuple[LyricLine, ...]


def parse_lrc(lrc_text: str) -> Timeline:
    """
    Parse an LRC string into a timeline sorted by timestamp.

    Supports ``[mm:ss] text`` and ``[mm:ss.ff] text``. Only the leading tag of
    a line is recognised; lines without one (metadata tags, blank lines,
    plain text) are skipped. Lines sharing a timestamp keep their input order.
    """
    lines: list[LyricLine] = []

    for raw_line in lrc_text.splitlines():
        m = _LRC_TAG.match(raw_line)
        if not m:
            continue
        minutes = int(m.group(1))
        seconds = int(m.group(2))
        # Fraction is centiseconds: ".5" is tenths, digits past the second are dropped
        frac_str = (m.group(3) or "0").ljust(2, "0")[:2]
        centis = int(frac_str)
        timestamp_us = (minutes * 60 + seconds) * 1_000_000 + centis * 10_000
        lines.append(LyricLine(timestamp_us=timestamp_us, text=m.group(4).strip()))

    # list.sort is stable, so equal timestamps stay in file order
    lines.sort(key=lambda l: l.timestamp_us)
    return tuple(lines)


class LyricCursor:
    """Stateful lookup over one timeline.

    Remembers the index resolved by the previous query so that a forward
    moving playback position only scans the few lines it has passed since.
    Any position earlier than the remembered line restarts the scan from the
    top. The result is always the same as a full scan from index 0 keeping
    the last line whose timestamp is ``<= position``.
    """

    def __init__(self, timeline: Timeline) -> None:
        self.timeline = timeline
        self.last_index = -1

    def lookup(self, position_us: int) -> str | None:
        lines = self.timeline
        if not lines:
            return None

        if self.last_index == -1 or position_us < lines[self.last_index].timestamp_us:
            # First query or rewind
            self.last_index = -1
            start = 0
        else:
            start = self.last_index

        for i in range(start, len(lines)):
            if lines[i].timestamp_us <= position_us:
                self.last_index = i
            else:
                break

        if self.last_index < 0:
            return None
        return lines[self.last_index].text
