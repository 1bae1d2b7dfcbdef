from __future__ import annotations

import re

from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument, LyricLine
from lyric_engine.options import GenerateConfig
from lyric_engine.util.timing import fmt_clock

from ._common import Emitter, header_lines, rounded, single_track_lines

TIMING_SYNTAX_RE = re.compile(r"[\[<]\d{1,3}:\d{1,2}\.\d{1,6}[\]>]")


def _stamp(ms: int, e: Emitter) -> str:
    return fmt_clock(ms, e.resolution, minute_width=1)


def generate_spl(doc: LyricDocument, config: GenerateConfig) -> str:
    """
    `[m:ss.xx]word<m:ss.xx>word[m:ss.xx]`: the line stamp opens the first
    word, inline stamps open the others, and the trailing stamp is the end.
    Translation and romanization follow on lines repeating the stamp.
    """
    e = Emitter(FormatKind.SPL, config, TIMING_SYNTAX_RE)
    e.check_voices(doc)
    out = header_lines(doc, e)
    for line in doc.lines:
        for i, track in enumerate(single_track_lines(line, config.background)):
            if not track:
                continue
            words = rounded(track, e)
            start = words[0][1]
            parts = [f"[{_stamp(start, e)}]"]
            cursor = start
            for j, (text, s, t) in enumerate(words):
                if j:
                    if s > cursor:
                        parts.append(f"<{_stamp(cursor, e)}>")
                    parts.append(f"<{_stamp(s, e)}>")
                parts.append(text)
                cursor = t
            parts.append(f"[{_stamp(cursor, e)}]")
            out.append("".join(parts))
            if i == 0 and config.inline_translation:
                out.extend(_extra_lines(line, start, e))
    return e.join(out)


def _extra_lines(line: LyricLine, start: int, e: Emitter) -> list[str]:
    if len(line.translations) > 1 or len(line.romanization) > 1:
        e.lossy("more than one translation or romanization language")
    translation = next(iter(line.translations.values()), None)
    roman = next(iter(line.romanization.values()), None)
    if roman and not translation:
        e.lossy("romanization without a translation")
        roman = None
    stamp = f"[{_stamp(start, e)}]"
    return [stamp + e.text(text) for text in (translation, roman) if text]
