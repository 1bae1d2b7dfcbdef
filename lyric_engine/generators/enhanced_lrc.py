from __future__ import annotations

from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument, Syllable
from lyric_engine.options import GenerateConfig
from lyric_engine.util.timing import fmt_clock

from ._common import Emitter, header_lines, rounded, single_track_lines
from .lrc import TIMING_SYNTAX_RE


def word_tags(track: list[Syllable], e: Emitter) -> tuple[int, str]:
    """
    `<t>word<t>word<t>` for one track, closing gaps with an extra stamp.
    Returns the rounded start of the first word and the body.
    """
    words = rounded(track, e)
    parts: list[str] = []
    cursor = words[0][1]
    for text, start, end in words:
        if start > cursor:
            parts.append(f"<{fmt_clock(cursor, e.resolution)}>")
        parts.append(f"<{fmt_clock(start, e.resolution)}>{text}")
        cursor = end
    parts.append(f"<{fmt_clock(cursor, e.resolution)}>")
    return words[0][1], "".join(parts)


def generate_enhanced_lrc(doc: LyricDocument, config: GenerateConfig) -> str:
    """`[mm:ss.xx]<mm:ss.xx>word<mm:ss.xx>word<mm:ss.xx>`, a translation on the following line."""
    e = Emitter(FormatKind.ENHANCED_LRC, config, TIMING_SYNTAX_RE)
    e.check_voices(doc)
    e.check_translations(doc, translations=True, romanization=False)
    out = header_lines(doc, e)
    for line in doc.lines:
        tracks = [t for t in single_track_lines(line, config.background) if t]
        for i, track in enumerate(tracks):
            start, body = word_tags(track, e)
            stamp = f"[{fmt_clock(start, e.resolution)}]"
            out.append(stamp + body)
            if i == 0 and config.inline_translation and line.translations:
                if len(line.translations) > 1:
                    e.lossy("more than one translation language")
                out.append(stamp + e.text(next(iter(line.translations.values()))))
    return e.join(out)
