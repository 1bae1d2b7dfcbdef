from __future__ import annotations

import re
from xml.sax.saxutils import unescape

from lyric_engine.model import LyricDocument, LyricLine
from lyric_engine.options import ParseOptions
from lyric_engine.util.numbers import NumberError, parse_int
from lyric_engine.util.text import split_lines

from ._common import Collector, attach_background, strip_background_parens, syllables_from_spans

_LINE_RE = re.compile(r"^\[(\d+),(\d+)\](.*)$")
_WORD_RE = re.compile(r"(.*?)\((\d+),(\d+)\)")
_XML_CONTENT_RE = re.compile(r'LyricContent="(.*?)"\s*/?>', re.DOTALL)


def read_timed_words(body: str, field: str = "word") -> tuple[list[tuple[str, int, int]], str]:
    """`text(start,dur)...` -> ([(text, start, end)], trailing untimed text)."""
    spans: list[tuple[str, int, int]] = []
    pos = 0
    for m in _WORD_RE.finditer(body):
        start = parse_int(m.group(2), field=f"{field} start")
        dur = parse_int(m.group(3), field=f"{field} duration")
        spans.append((m.group(1), start, start + dur))
        pos = m.end()
    return spans, body[pos:]


def parse_qrc(text: str, options: ParseOptions | None = None) -> LyricDocument:
    """
    `[line_start,line_duration]word(start,duration)word(start,duration)`

    A line whose words are wrapped in parentheses is a background vocal and is
    attached to the preceding line. The `<QrcInfos>` XML wrapper is unpacked.
    """
    c = Collector("QRC")
    xml = _XML_CONTENT_RE.search(text)
    if xml:
        text = unescape(xml.group(1), {"&quot;": '"', "&apos;": "'"})

    lines: list[LyricLine] = []
    timed_lines = 0
    for line_no, raw in enumerate(split_lines(text), start=1):
        line = raw.strip()
        if not line:
            continue
        m = _LINE_RE.match(line)
        if not m:
            if not c.meta_tag(line):
                c.warn(line_no, f"unrecognized line ignored: {line[:40]!r}")
            continue
        timed_lines += 1
        try:
            line_start = parse_int(m.group(1), field="line start")
            line_end = line_start + parse_int(m.group(2), field="line duration")
            spans, rest = read_timed_words(m.group(3))
        except NumberError as e:
            c.warn(line_no, str(e))
            continue

        if not spans:
            body = m.group(3).strip()
            if body:
                lines.append(LyricLine(start_ms=line_start, end_ms=line_end, text=body))
            continue
        if rest.strip():
            c.warn(line_no, f"untimed trailing text ignored: {rest.strip()[:40]!r}")

        inner = strip_background_parens(spans)
        if inner is not None and attach_background(lines, inner):
            continue
        track = syllables_from_spans(spans, warn=lambda msg, n=line_no: c.warn(n, msg))
        if track:
            lines.append(LyricLine.from_syllables(track))

    if not timed_lines:
        raise c.wrong_format("no [start,duration] lines found")
    if not lines and not c.metadata:
        raise c.corrupt("no readable lyric line")
    return c.document(lines)
