from __future__ import annotations

import base64
import json
import re

from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument
from lyric_engine.options import GenerateConfig
from lyric_engine.parsers.krc import ROMANIZATION_TYPE, TRANSLATION_TYPE

from ._common import Emitter, header_lines, rounded, single_track_lines

TIMING_SYNTAX_RE = re.compile(r"<\d+,\d+,-?\d+>")


def _language_tag(translations: list[str], romanizations: list[str]) -> str:
    content = []
    if any(romanizations):
        content.append({"language": 0, "type": ROMANIZATION_TYPE, "lyricContent": [[r] for r in romanizations]})
    if any(translations):
        content.append({"language": 0, "type": TRANSLATION_TYPE, "lyricContent": [[t] for t in translations]})
    payload = json.dumps({"content": content, "version": 1}, ensure_ascii=False)
    return f"[language:{base64.b64encode(payload.encode('utf-8')).decode('ascii')}]"


def generate_krc(doc: LyricDocument, config: GenerateConfig) -> str:
    """
    `[line_start,line_duration]<offset,duration,0>word...` with word offsets
    relative to the line; translations and romanization go into a base64 JSON
    `[language:...]` tag holding one row per written line.
    """
    e = Emitter(FormatKind.KRC, config, TIMING_SYNTAX_RE)
    e.check_voices(doc)
    # [language:] is taken by the translation block
    if "language" in doc.metadata:
        e.lossy("metadata 'language'")
    out = [row for row in header_lines(doc, e) if not row.startswith("[language:")]
    body: list[str] = []
    translations: list[str] = []
    romanizations: list[str] = []
    for line in doc.lines:
        if config.inline_translation and (len(line.translations) > 1 or len(line.romanization) > 1):
            e.lossy("more than one translation or romanization language")
        for i, track in enumerate(single_track_lines(line, config.background)):
            if not track:
                continue
            words = rounded(track, e)
            start = words[0][1]
            end = max(w[2] for w in words)
            tags = "".join(f"<{s - start},{t - s},0>{text}" for text, s, t in words)
            body.append(f"[{start},{end - start}]{tags}")
            first = i == 0
            translations.append(e.text(next(iter(line.translations.values()), "")) if first else "")
            romanizations.append(e.text(next(iter(line.romanization.values()), "")) if first else "")
    if config.inline_translation and (any(translations) or any(romanizations)):
        out.append(_language_tag(translations, romanizations))
    out.extend(body)
    return e.join(out)
