from __future__ import annotations

import json
import re

from lyric_engine.model import LyricDocument, LyricLine
from lyric_engine.options import ParseOptions
from lyric_engine.util.numbers import NumberError, parse_int
from lyric_engine.util.text import split_lines

from ._common import Collector, syllables_from_spans

_LINE_RE = re.compile(r"^\[(\d+),(\d+)\](.*)$")
_WORD_SPLIT_RE = re.compile(r"\((\d+),(\d+),-?\d+\)")


def _credit_line(c: Collector, line: str, line_no: int) -> None:
    # {"t":0,"c":[{"tx":"作词: "},{"tx":"Name"},{"tx":"/"},{"tx":"Other"}]}
    try:
        data = json.loads(line)
        parts = [str(item.get("tx", "")) for item in data.get("c", [])]
    except (ValueError, AttributeError, TypeError) as e:
        c.warn(line_no, f"invalid credit line ignored: {e}")
        return
    if len(parts) < 2:
        c.warn(line_no, "credit line without a value ignored")
        return
    label = parts[0].strip().rstrip(":：").strip()
    for value in "".join(parts[1:]).split("/"):
        c.add_meta(label, value)


def parse_yrc(text: str, options: ParseOptions | None = None) -> LyricDocument:
    """`[line_start,line_duration](start,duration,0)word(start,duration,0)word` plus JSON credit lines."""
    c = Collector("YRC")
    lines: list[LyricLine] = []
    timed_lines = 0

    for line_no, raw in enumerate(split_lines(text), start=1):
        line = raw.strip()
        if not line:
            continue
        if line.startswith("{"):
            _credit_line(c, line, line_no)
            continue
        m = _LINE_RE.match(line)
        if not m:
            if not c.meta_tag(line):
                c.warn(line_no, f"unrecognized line ignored: {line[:40]!r}")
            continue
        timed_lines += 1
        parts = _WORD_SPLIT_RE.split(m.group(3))
        try:
            line_start = parse_int(m.group(1), field="line start")
            line_end = line_start + parse_int(m.group(2), field="line duration")
            spans = []
            for i in range(1, len(parts), 3):
                start = parse_int(parts[i], field="word start")
                spans.append((parts[i + 2], start, start + parse_int(parts[i + 1], field="word duration")))
        except NumberError as e:
            c.warn(line_no, str(e))
            continue

        if parts[0].strip() and spans:
            c.warn(line_no, f"untimed leading text ignored: {parts[0].strip()[:40]!r}")
        if not spans:
            if parts[0].strip():
                lines.append(LyricLine(start_ms=line_start, end_ms=line_end, text=parts[0].strip()))
            continue
        track = syllables_from_spans(spans, warn=lambda msg, n=line_no: c.warn(n, msg))
        if track:
            lines.append(LyricLine.from_syllables(track))

    if not timed_lines:
        raise c.wrong_format("no [start,duration] lines found")
    if not lines and not c.metadata:
        raise c.corrupt("no readable lyric line")
    return c.document(lines)
