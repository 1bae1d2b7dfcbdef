from __future__ import annotations

from dataclasses import replace

from lyric_engine.formats import FormatKind
from lyric_engine.merge import ROMANIZATION, TRANSLATION, auxiliary_document, strip_auxiliary
from lyric_engine.model import LyricDocument
from lyric_engine.options import EndTimeMode, GenerateConfig
from lyric_engine.parsers.lqe import HEADER

from ._common import Emitter, header_lines
from .lrc import generate_lrc
from .lys import generate_lys

VERSION = "1.0"


def generate_lqe(doc: LyricDocument, config: GenerateConfig) -> str:
    """
    Lyricify Quick Export: the header and metadata, the lyrics as an LYS
    section, then one LRC section per translation language and romanization.
    """
    e = Emitter(FormatKind.LQE, config)
    nl = config.newline
    section_config = replace(config, lrc_end_time=EndTimeMode.NEVER)
    bare = strip_auxiliary(doc).with_metadata({})
    out = [HEADER, f"[version:{VERSION}]", *header_lines(doc, e), ""]
    language = doc.first("language") or "und"
    out.append(f"[lyrics: format@lys, language@{language}]")
    out.append(generate_lys(bare, section_config).rstrip(nl))

    if config.inline_translation:
        for name, kind, codes in (
            ("translation", TRANSLATION, doc.translation_languages),
            ("pronunciation", ROMANIZATION, doc.romanization_schemes),
        ):
            for code in codes:
                body = generate_lrc(auxiliary_document(doc, kind, code), section_config).rstrip(nl)
                out.extend(["", f"[{name}: format@lrc, language@{code}]", body])
    return e.join(out)
