from __future__ import annotations

from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument
from lyric_engine.options import GenerateConfig
from lyric_engine.parsers.lyl import HEADER

from ._common import Emitter, header_lines, plain_lines


def generate_lyl(doc: LyricDocument, config: GenerateConfig) -> str:
    e = Emitter(FormatKind.LYRICIFY_LINES, config)
    e.check_voices(doc)
    e.check_translations(doc, translations=False, romanization=False)
    out = [HEADER, *header_lines(doc, e)]
    for line in doc.lines:
        for start, end, text in plain_lines(line, config.background):
            if text.strip():
                start, end = e.span(start, end)
                out.append(f"[{start},{end}]{e.text(text)}")
    return e.join(out)
