from __future__ import annotations

import re

from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument
from lyric_engine.options import EndTimeMode, GenerateConfig
from lyric_engine.util.timing import fmt_clock

from ._common import Emitter, header_lines, plain_lines

TIMING_SYNTAX_RE = re.compile(r"[\[<]\d{2,}:\d{2}[.:]\d{2,3}[\]>]")


def _lrc_rows(doc: LyricDocument, e: Emitter) -> list[tuple[int, int, list[str]]]:
    """`(start, end, texts)`: the main text then, under the same stamp, its translation and romanization."""
    rows: list[tuple[int, int, list[str]]] = []
    inline = e.config.inline_translation
    for line in doc.lines:
        parts = plain_lines(line, e.config.background)
        for i, (start, end, text) in enumerate(parts):
            if not text.strip():
                continue
            texts = [e.text(text)]
            if inline and i == 0:
                if len(line.translations) > 1:
                    e.lossy("more than one translation language")
                if len(line.romanization) > 1:
                    e.lossy("more than one romanization")
                translation = next(iter(line.translations.values()), None)
                roman = next(iter(line.romanization.values()), None)
                if translation:
                    texts.append(e.text(translation))
                    if roman:
                        texts.append(e.text(roman))
                elif roman:
                    e.lossy("romanization without a translation")
            rows.append((e.t(start), e.t(end), texts))
    rows.sort(key=lambda r: r[0])
    return rows


def generate_lrc(doc: LyricDocument, config: GenerateConfig) -> str:
    """
    `[mm:ss.xx]text` lines after the metadata header.

    Translations and romanization are written as extra lines under the same
    stamp. `lrc_end_time` decides where an empty `[mm:ss.xx]` end marker is
    written after a line.
    """
    e = Emitter(FormatKind.LRC, config, TIMING_SYNTAX_RE)
    e.check_voices(doc)
    out = header_lines(doc, e)
    rows = _lrc_rows(doc, e)
    for i, (start, end, texts) in enumerate(rows):
        stamp = f"[{fmt_clock(start, e.resolution)}]"
        out.extend(stamp + text for text in texts)
        next_start = rows[i + 1][0] if i + 1 < len(rows) else None
        if _needs_end_marker(config, end, next_start):
            out.append(f"[{fmt_clock(end, e.resolution)}]")
    return e.join(out)


def _needs_end_marker(config: GenerateConfig, end: int, next_start: int | None) -> bool:
    if config.lrc_end_time is EndTimeMode.NEVER:
        return False
    if next_start is None:
        return True
    gap = next_start - end
    if config.lrc_end_time is EndTimeMode.ALWAYS:
        return gap > 0
    return gap >= config.lrc_pause_threshold_ms
