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

_STAMP = r"(\d{1,3}):(\d{1,2})\.(\d{1,6})"
_LEADING_RE = re.compile(rf"^((?:\[{_STAMP}\])+)(.*)$")
_LEADING_STAMP_RE = re.compile(rf"\[{_STAMP}\]")
_ANY_STAMP_RE = re.compile(rf"([\[<]){_STAMP}[\]>]")

DEFAULT_LINE_MS = 5_000


@dataclass(slots=True)
class _Block:
    starts: list[int]
    body: str
    line_no: int
    extra: list[str] = field(default_factory=list)  # translation lines


def _stamps(text: str) -> list[int]:
    return [clock_to_ms(*m.groups()) for m in _LEADING_STAMP_RE.finditer(text)]


def parse_spl(text: str, options: ParseOptions | None = None) -> LyricDocument:
    """
    SPL: `[m:ss.xx]` line stamps with 1-6 fraction digits, `<m:ss.xx>` word stamps.

    - several leading stamps repeat the line at each time
    - a trailing `[m:ss.xx]` is the explicit end of the line
    - following lines with the same stamp, or without any stamp, are translations
    - otherwise a line ends where the next one starts, or after 5 s
    """
    options = options or ParseOptions()
    c = Collector("SPL")
    blocks: list[_Block] = []

    for line_no, raw in enumerate(split_lines(text), start=1):
        line = raw.strip()
        if not line:
            continue
        m = _LEADING_RE.match(line)
        if m:
            try:
                starts = _stamps(m.group(1))
            except NumberError as e:
                c.warn(line_no, f"invalid timestamp: {e}")
                continue
            body = m.group(5)
            if (
                blocks
                and starts == blocks[-1].starts
                and body.strip()
                and not _ANY_STAMP_RE.search(body)
            ):
                blocks[-1].extra.append(normalize_space(body))
            else:
                blocks.append(_Block(starts=starts, body=body, line_no=line_no))
            continue
        if c.meta_tag(line):
            continue
        if blocks:
            blocks[-1].extra.append(normalize_space(line))
        else:
            c.warn(line_no, f"untimed line before any timed line ignored: {line[:40]!r}")

    if not blocks:
        raise c.wrong_format("no [m:ss.xx] line stamps found")

    all_starts = sorted({s for b in blocks for s in b.starts})
    lines: list[LyricLine] = []
    for block in blocks:
        for start in block.starts:
            j = bisect_right(all_starts, start)
            next_start = all_starts[j] if j < len(all_starts) else None
            try:
                line = _build_line(block, start, next_start, options, c)
            except NumberError as e:
                c.warn(block.line_no, f"invalid timestamp: {e}")
                continue
            if line is not None:
                lines.append(line)
    return c.document(lines)


def _build_line(
    block: _Block, start: int, next_start: int | None, options: ParseOptions, c: Collector
) -> LyricLine | None:
    parts = _ANY_STAMP_RE.split(block.body)
    # parts: text, then (bracket, minutes, seconds, fraction, text) per stamp
    tags = [
        (parts[i], clock_to_ms(parts[i + 1], parts[i + 2], parts[i + 3]), parts[i + 4])
        for i in range(1, len(parts), 5)
    ]
    explicit_end = None
    if tags and tags[-1][0] == "[" and not tags[-1][2].strip():
        explicit_end = tags.pop()[1]
    shift = start - block.starts[0]  # repeated lines reuse the word timing of the first occurrence
    if explicit_end is not None:
        default_end = explicit_end + shift
    else:
        default_end = next_start if next_start is not None else start + DEFAULT_LINE_MS

    extra = [t for t in block.extra if t]
    translations = {options.translation_lang(): extra[0]} if extra else {}
    romanization = {options.romanization_scheme: extra[1]} if len(extra) > 1 else {}
    for dropped in extra[2:]:
        c.warn(block.line_no, f"extra translation line ignored: {dropped[:40]!r}")

    if not tags:
        body = normalize_space(parts[0])
        if not body:
            return None
        return LyricLine(
            start_ms=start,
            end_ms=max(start, default_end),
            text=body,
            translations=translations,
            romanization=romanization,
        )

    spans: list[list] = []
    cursor = start
    open_span: list | None = None
    if parts[0]:
        open_span = [parts[0], cursor, None]
        spans.append(open_span)
    for _bracket, t, seg in tags:
        t += shift
        if open_span is not None:
            open_span[2] = t
            open_span = None
        cursor = t
        if seg:
            open_span = [seg, cursor, None]
            spans.append(open_span)
    if open_span is not None:
        open_span[2] = max(open_span[1], default_end)
    track = syllables_from_spans(
        [tuple(s) for s in spans], warn=lambda msg: c.warn(block.line_no, msg)
    )
    if not track:
        return None
    return LyricLine.from_syllables(track, translations=translations, romanization=romanization)
