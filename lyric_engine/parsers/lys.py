from __future__ import annotations

import re

from lyric_engine.model import LyricDocument, LyricLine
from lyric_engine.options import ParseOptions
from lyric_engine.util.numbers import NumberError, parse_int
from lyric_engine.util.text import split_lines

from ._common import Collector, attach_background, strip_background_parens, syllables_from_spans
from .qrc import read_timed_words

_LINE_RE = re.compile(r"^\[(\d+)\](.*)$")

# Line properties: 0-2 unset, 3-5 main, 6-8 background; within each group
# the voice is unset, left, right.
BACKGROUND_PROPERTIES = {6, 7, 8}
LEFT_PROPERTIES = {1, 4, 7}
RIGHT_PROPERTIES = {2, 5, 8}


def agent_for_property(prop: int) -> str | None:
    if prop in RIGHT_PROPERTIES:
        return "v2"
    if prop in LEFT_PROPERTIES:
        return "v1"
    return None


def parse_lys(text: str, options: ParseOptions | None = None) -> LyricDocument:
    """
    Lyricify Syllable: `[property]word(start,duration)word(start,duration)`.

    Background lines (property 6-8) attach to the preceding line; a background
    line with nothing to attach to is kept as a line of its own.
    """
    c = Collector("LYS")
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
        try:
            prop = parse_int(m.group(1), field="property", maximum=8)
            spans, rest = read_timed_words(m.group(2))
        except NumberError as e:
            c.warn(line_no, str(e))
            continue
        timed_lines += 1
        if not spans:
            c.warn(line_no, "line without timed words ignored")
            continue
        if rest.strip():
            c.warn(line_no, f"untimed trailing text ignored: {rest.strip()[:40]!r}")

        if prop in BACKGROUND_PROPERTIES:
            inner = strip_background_parens(spans) or spans
            if attach_background(lines, inner):
                continue
        track = syllables_from_spans(spans, warn=lambda msg, n=line_no: c.warn(n, msg))
        if track:
            lines.append(LyricLine.from_syllables(track, agent_id=agent_for_property(prop)))

    if not timed_lines:
        raise c.wrong_format("no [property] lines with timed words found")
    return c.document(lines)
