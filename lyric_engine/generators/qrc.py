from __future__ import annotations

import re

from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument, Syllable
from lyric_engine.options import GenerateConfig

from ._common import Emitter, header_lines, line_track, rounded, wrap_background

TIMING_SYNTAX_RE = re.compile(r"\(\d+,\d+(?:,-?\d+)?\)")


def timed_words(track: list[Syllable], e: Emitter) -> tuple[int, int, str]:
    """`word(start,duration)...` with the rounded bounds of the track."""
    words = rounded(track, e)
    body = "".join(f"{text}({start},{end - start})" for text, start, end in words)
    return words[0][1], max(end for _, _, end in words), body


def generate_qrc(doc: LyricDocument, config: GenerateConfig) -> str:
    """
    `[line_start,line_duration]word(start,duration)...`; background vocals go
    on their own line right after, wrapped in parentheses.
    """
    e = Emitter(FormatKind.QRC, config, TIMING_SYNTAX_RE)
    e.check_voices(doc)
    e.check_translations(doc, translations=False, romanization=False)
    out = header_lines(doc, e)
    for line in doc.lines:
        for track in (line_track(line), wrap_background(line.background_syllables)):
            if not track:
                continue
            start, end, body = timed_words(track, e)
            out.append(f"[{start},{end - start}]{body}")
    return e.join(out)
