from __future__ import annotations

import json
import re

from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument
from lyric_engine.options import GenerateConfig

from ._common import Emitter, rounded, single_track_lines

TIMING_SYNTAX_RE = re.compile(r"\(\d+,\d+,-?\d+\)")

# canonical metadata key -> credit label
CREDIT_LABELS = {
    "title": "曲名",
    "artist": "歌手",
    "album": "专辑",
    "lyricist": "作词",
    "composer": "作曲",
}


def _credit_lines(doc: LyricDocument, e: Emitter) -> list[str]:
    for key in doc.metadata:
        if key not in CREDIT_LABELS:
            e.lossy(f"metadata {key!r}")
    credits = [(label, doc.metadata[key]) for key, label in CREDIT_LABELS.items() if key in doc.metadata]
    if not credits:
        return []
    first_start = doc.lines[0].start_ms if doc.lines else 0
    step = first_start // len(credits)
    rows = []
    for i, (label, values) in enumerate(credits):
        parts = [{"tx": f"{label}: "}]
        for j, value in enumerate(values):
            if j:
                parts.append({"tx": "/"})
            parts.append({"tx": value})
        rows.append(json.dumps({"t": i * step, "c": parts}, ensure_ascii=False, separators=(",", ":")))
    return rows


def generate_yrc(doc: LyricDocument, config: GenerateConfig) -> str:
    """
    JSON credit lines spread over the intro, then
    `[line_start,line_duration](start,duration,0)word...`.
    """
    e = Emitter(FormatKind.YRC, config, TIMING_SYNTAX_RE)
    e.check_voices(doc)
    e.check_translations(doc, translations=False, romanization=False)
    out = _credit_lines(doc, e)
    for line in doc.lines:
        for track in single_track_lines(line, config.background):
            if not track:
                continue
            words = rounded(track, e)
            start = words[0][1]
            end = max(w[2] for w in words)
            body = "".join(f"({s},{t - s},0){text}" for text, s, t in words)
            out.append(f"[{start},{end - start}]{body}")
    return e.join(out)
