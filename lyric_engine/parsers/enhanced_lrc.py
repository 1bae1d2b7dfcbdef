from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass, field

from lyric_engine.model import LyricDocument, LyricLine
from lyric_engine.options import ParseOptions
from lyric_engine.util.numbers import NumberError
from lyric_engine.util.text import normalize_space, split_lines
from lyric_engine.util.timing import clock_to_ms

from ._common import Collector, syllables_from_spans

_LINE_RE = re.compile(r"^\[(\d{2,}):(\d{2})[.:](\d{2,3})\](.*)$")
_WORD_SPLIT_RE = re.compile(r"<(\d{2,}):(\d{2})[.:](\d{2,3})>")

LAST_SYLLABLE_MS = 1_000
LAST_LINE_MS = 2_000


@dataclass(slots=True)
class _Pending:
    start_ms: int
    line_no: int
    spans: list[list] = field(default_factory=list)  # [text, start, end | None]
    text: str | None = None
    translation: str | None = None


def parse_enhanced_lrc(text: str, options: ParseOptions | None = None) -> LyricDocument:
    """
    `[mm:ss.xx]<mm:ss.xx>word <mm:ss.xx>word<mm:ss.xx>`

    Each word ends at the next word stamp. A word left open at the end of its
    line ends where the next line starts (or after 1 s at the end of the file).
    Lines without word stamps are line-timed; a plain line repeating the
    previous line's stamp is its translation; an empty timed line only closes
    the previous one.
    """
    options = options or ParseOptions()
    c = Collector("Enhanced LRC")
    pending: list[_Pending] = []
    end_markers: list[int] = []
    timed_lines = 0

    for line_no, raw in enumerate(split_lines(text), start=1):
        line = raw.strip()
        if not line:
            continue
        m = _LINE_RE.match(line)
        if not m:
            if not c.meta_tag(line):
                c.warn(line_no, f"untimed line ignored: {line[:40]!r}")
            continue
        timed_lines += 1
        try:
            start_ms = clock_to_ms(m.group(1), m.group(2), m.group(3))
            entry = _read_body(m.group(4), start_ms, line_no)
        except NumberError as e:
            c.warn(line_no, f"invalid timestamp: {e}")
            continue

        if entry is None:
            end_markers.append(start_ms)
        elif (
            not entry.spans
            and pending
            and pending[-1].start_ms == start_ms
            and pending[-1].translation is None
        ):
            pending[-1].translation = entry.text
        else:
            pending.append(entry)

    if not pending:
        if timed_lines:
            raise c.corrupt("no readable timed line")
        if not c.metadata:
            raise c.wrong_format("no [mm:ss.xx] line stamps found")
        return c.document([])

    pending.sort(key=lambda p: p.start_ms)
    boundaries = sorted({p.start_ms for p in pending} | set(end_markers))
    lines: list[LyricLine] = []
    for p in pending:
        j = bisect_right(boundaries, p.start_ms)
        next_start = boundaries[j] if j < len(boundaries) else None
        line = _finish(p, next_start, options, c)
        if line is not None:
            lines.append(line)
    return c.document(lines)


def _read_body(body: str, start_ms: int, line_no: int) -> _Pending | None:
    parts = _WORD_SPLIT_RE.split(body)
    entry = _Pending(start_ms=start_ms, line_no=line_no)
    if len(parts) == 1:
        text = normalize_space(body)
        if not text:
            return None
        entry.text = text
        return entry

    cursor = start_ms
    open_span: list | None = None
    if parts[0]:
        open_span = [parts[0], cursor, None]
        entry.spans.append(open_span)
    # split() yields text, then (minutes, seconds, fraction, text) per word stamp
    for i in range(1, len(parts), 4):
        t = clock_to_ms(parts[i], parts[i + 1], parts[i + 2])
        seg = parts[i + 3]
        if open_span is not None:
            open_span[2] = t
            open_span = None
        cursor = t
        if seg:
            open_span = [seg, cursor, None]
            entry.spans.append(open_span)
    if not entry.spans:
        return None
    return entry


def _finish(p: _Pending, next_start: int | None, options: ParseOptions, c: Collector) -> LyricLine | None:
    translations = {options.translation_lang(): p.translation} if p.translation else {}
    if not p.spans:
        end = next_start if next_start is not None else p.start_ms + LAST_LINE_MS
        return LyricLine(start_ms=p.start_ms, end_ms=end, text=p.text, translations=translations)

    spans = []
    for text, start, end in p.spans:
        if end is None:
            end = next_start if next_start is not None and next_start > start else start + LAST_SYLLABLE_MS
        spans.append((text, start, end))
    track = syllables_from_spans(spans, warn=lambda msg: c.warn(p.line_no, msg))
    if not track:
        return None
    return LyricLine.from_syllables(track, translations=translations)
