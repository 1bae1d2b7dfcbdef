from __future__ import annotations

import re

from lyric_engine.model import LyricDocument, LyricLine
from lyric_engine.options import ParseOptions
from lyric_engine.util.numbers import NumberError, parse_int
from lyric_engine.util.text import normalize_space, split_lines

from ._common import Collector

HEADER = "[type:LyricifyLines]"
_LINE_RE = re.compile(r"^\[(\d+),(\d+)\](.*)$")


def parse_lyl(text: str, options: ParseOptions | None = None) -> LyricDocument:
    """Lyricify Lines: a `[type:LyricifyLines]` header, then `[start,end]text` per line."""
    c = Collector("Lyricify Lines")
    lines: list[LyricLine] = []
    seen_header = False
    timed_lines = 0

    for line_no, raw in enumerate(split_lines(text), start=1):
        line = raw.strip()
        if not line:
            continue
        if line.lower() == HEADER.lower():
            seen_header = True
            continue
        m = _LINE_RE.match(line)
        if not m:
            if not c.meta_tag(line):
                c.warn(line_no, f"unrecognized line ignored: {line[:40]!r}")
            continue
        timed_lines += 1
        try:
            start = parse_int(m.group(1), field="start")
            end = parse_int(m.group(2), field="end")
        except NumberError as e:
            c.warn(line_no, str(e))
            continue
        if end < start:
            c.warn(line_no, f"end {end} before start {start}, line ignored")
            continue
        body = normalize_space(m.group(3))
        if body:
            lines.append(LyricLine(start_ms=start, end_ms=end, text=body))

    if not seen_header and not timed_lines:
        raise c.wrong_format("missing [type:LyricifyLines] header and no [start,end] lines")
    return c.document(lines)
