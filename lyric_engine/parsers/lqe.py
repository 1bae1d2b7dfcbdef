from __future__ import annotations

import re
from dataclasses import dataclass, field

from lyric_engine.errors import ParseError, UnsupportedFeature
from lyric_engine.formats import FormatKind
from lyric_engine.merge import ROMANIZATION, TRANSLATION, merge_auxiliary
from lyric_engine.model import LyricDocument
from lyric_engine.options import ParseOptions
from lyric_engine.processors.metadata import merge_metadata
from lyric_engine.util.text import split_lines

from ._common import Collector
from .enhanced_lrc import parse_enhanced_lrc
from .lrc import parse_lrc
from .lys import parse_lys

HEADER = "[Lyricify Quick Export]"
_SECTION_RE = re.compile(r"^\[(lyrics|translation|pronunciation)\s*:(.*)\]$", re.IGNORECASE)

SECTION_PARSERS = {
    FormatKind.LYS: parse_lys,
    FormatKind.LRC: parse_lrc,
    FormatKind.ENHANCED_LRC: parse_enhanced_lrc,
}


@dataclass(slots=True)
class _Section:
    name: str
    params: dict[str, str]
    line_no: int
    body: list[str] = field(default_factory=list)


def _params(text: str) -> dict[str, str]:
    # "format@lys, language@ja"
    out: dict[str, str] = {}
    for part in text.split(","):
        key, sep, value = part.partition("@")
        if sep and key.strip():
            out[key.strip().lower()] = value.strip()
    return out


def parse_lqe(text: str, options: ParseOptions | None = None) -> LyricDocument:
    """
    Lyricify Quick Export: a header, LRC-style metadata, then
    `[lyrics: format@lys, language@ja]`, `[translation: ...]` and
    `[pronunciation: ...]` sections. Each section is read with the parser of
    its declared format; translations and pronunciations are merged into the
    main lyrics by start time.
    """
    options = options or ParseOptions()
    c = Collector("LQE")
    raw_lines = split_lines(text)
    first = next((l.strip() for l in raw_lines if l.strip()), "")
    if first.lower() != HEADER.lower():
        raise c.wrong_format(f"first line is not {HEADER}")

    sections: list[_Section] = []
    for line_no, raw in enumerate(raw_lines, start=1):
        line = raw.strip()
        m = _SECTION_RE.match(line)
        if m:
            sections.append(_Section(m.group(1).lower(), _params(m.group(2)), line_no))
            continue
        if sections:
            sections[-1].body.append(raw)
        elif line and line.lower() != HEADER.lower() and not line.lower().startswith("[version:"):
            if not c.meta_tag(line):
                c.warn(line_no, f"unrecognized header line ignored: {line[:40]!r}")

    lyrics = [s for s in sections if s.name == "lyrics"]
    if not lyrics:
        raise c.corrupt("no [lyrics: ...] section")
    if len(lyrics) > 1:
        c.warn(lyrics[1].line_no, "only the first [lyrics] section is used")

    main = _read_section(c, lyrics[0], options, required=True)
    language = lyrics[0].params.get("language")
    if language and language != "und":
        c.add_meta("language", language)

    seen_warnings = len(c.warnings)
    doc = LyricDocument.build(
        main.lines,
        metadata=merge_metadata(c.metadata, main.metadata),
        warnings=[*c.warnings, *main.warnings],
        agents=main.agents,
    )
    for section in sections:
        if section.name == "lyrics":
            continue
        aux = _read_section(c, section, options, required=False)
        if aux is None:
            continue
        if section.name == "translation":
            lang = section.params.get("language") or options.translation_lang()
            doc = merge_auxiliary(doc, aux.with_metadata({}), TRANSLATION, lang)
        else:
            scheme = section.params.get("language") or options.romanization_scheme
            doc = merge_auxiliary(doc, aux.with_metadata({}), ROMANIZATION, scheme)
    # warnings recorded while reading the auxiliary sections
    return doc.add_warnings(*c.warnings[seen_warnings:])


def _read_section(c: Collector, section: _Section, options: ParseOptions, required: bool) -> LyricDocument | None:
    name = section.params.get("format", "lrc")
    kind = FormatKind.from_string(name)
    if kind is None:
        c.warn(section.line_no, f"unknown section format {name!r}, read as LRC")
        kind = FormatKind.LRC
    parser = SECTION_PARSERS.get(kind)
    if parser is None:
        raise UnsupportedFeature("LQE", f"{kind.display_name} in a [{section.name}] section")
    try:
        return parser("\n".join(section.body), options)
    except ParseError as e:
        if required:
            raise c.corrupt(f"[{section.name}] section: {e.message}", section.line_no) from e
        c.warn(section.line_no, f"[{section.name}] section ignored: {e.message}")
        return None
