from __future__ import annotations

from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument
from lyric_engine.options import GenerateConfig

from ._common import Emitter, header_lines, line_track, wrap_background
from .qrc import TIMING_SYNTAX_RE, timed_words

# (main, background) property per side
NO_SIDE = (3, 6)
LEFT = (4, 7)
RIGHT = (5, 8)


def _sides(doc: LyricDocument) -> dict[str, tuple[int, int]]:
    """`v1`/`v2` keep their side; other ids take left then right in order of appearance."""
    order: list[str] = []
    for line in doc.lines:
        if line.agent_id is not None and line.agent_id not in order:
            order.append(line.agent_id)
    if set(order) <= {"v1", "v2"}:
        return {"v1": LEFT, "v2": RIGHT}
    return dict(zip(order, (LEFT, RIGHT)))


def generate_lys(doc: LyricDocument, config: GenerateConfig) -> str:
    """`[property]word(start,duration)...`; the property carries the side and the background flag."""
    e = Emitter(FormatKind.LYS, config, TIMING_SYNTAX_RE)
    e.check_voices(doc, limit=2)
    e.check_translations(doc, translations=False, romanization=False)
    sides = _sides(doc)
    out = header_lines(doc, e)
    for line in doc.lines:
        main_prop, bg_prop = sides.get(line.agent_id, NO_SIDE) if line.agent_id else NO_SIDE
        for prop, track in ((main_prop, line_track(line)), (bg_prop, wrap_background(line.background_syllables))):
            if track:
                out.append(f"[{prop}]{timed_words(track, e)[2]}")
    return e.join(out)
