from __future__ import annotations

import logging
from xml.etree import ElementTree as ET

from lyric_engine.errors import Corrupt, Location, UnsupportedFeature
from lyric_engine.model import LyricDocument, LyricLine
from lyric_engine.options import ParseOptions
from lyric_engine.util.numbers import NumberError
from lyric_engine.util.text import normalize_space
from lyric_engine.util.timing import parse_ttml_time

from ._common import Collector, strip_background_parens, syllables_from_spans

logger = logging.getLogger(__name__)

TT_NS = "http://www.w3.org/ns/ttml"
TTM_NS = "http://www.w3.org/ns/ttml#metadata"
ITUNES_NS = "http://music.apple.com/lyric-ttml-internal"
AMLL_NS = "http://www.example.com/ns/amll"
XML_NS = "http://www.w3.org/XML/1998/namespace"

ROLE_BACKGROUND = "x-bg"
ROLE_TRANSLATION = "x-translation"
ROLE_ROMANIZATION = "x-roman"


def local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def attr(el: ET.Element, name: str) -> str | None:
    """Attribute by local name, whatever namespace prefix the file used."""
    if name in el.attrib:
        return el.attrib[name]
    for key, value in el.attrib.items():
        if local(key) == name:
            return value
    return None


def _children(el: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in el if local(child.tag) == name]


def _find_all(el: ET.Element, name: str) -> list[ET.Element]:
    return [node for node in el.iter() if local(node.tag) == name]


def _text_of(el: ET.Element) -> str:
    return normalize_space("".join(el.itertext()))


def _tail(el: ET.Element) -> str:
    # indentation between pretty-printed spans is not lyric text
    tail = el.tail or ""
    if not tail.strip() and "\n" in tail:
        return ""
    return tail


def parse_ttml(text: str, options: ParseOptions | None = None) -> LyricDocument:
    """
    TTML as used by Apple Music and AMLL.

    Each `<p>` is a line: `<span begin end>` children are syllables, a span with
    `ttm:role="x-bg"` holds background syllables, `x-translation` and `x-roman`
    spans hold inline translations and romanization. Translations can also
    come from the Apple `iTunesMetadata` block, matched through `itunes:key`.
    """
    options = options or ParseOptions()
    c = Collector("TTML")
    stripped = text.lstrip("\ufeff").strip()
    try:
        root = ET.fromstring(stripped)
    except ET.ParseError as e:
        if "<tt" not in stripped:
            raise c.wrong_format("not an XML document with a <tt> root") from e
        line, column = e.position
        raise Corrupt("TTML", str(e), Location(line=line, offset=column)) from e
    if local(root.tag) != "tt":
        raise c.wrong_format(f"root element is <{local(root.tag)}>, expected <tt>")

    timing = (attr(root, "timing") or "").lower()
    if timing == "none":
        raise UnsupportedFeature("TTML", 'untimed lyrics (itunes:timing="None")')
    lang = attr(root, "lang")
    if lang:
        c.add_meta("language", lang)

    head_translations, head_romanizations = _read_head(c, root)

    lines: list[LyricLine] = []
    paragraphs = _find_all(root, "p")
    for index, p in enumerate(paragraphs, start=1):
        line = _read_paragraph(c, p, index, timing == "line", options)
        if line is None:
            continue
        key = attr(p, "key")
        if key:
            for code, rows in head_translations.items():
                if key in rows:
                    line = line.with_translation(code, rows[key])
            for scheme, rows in head_romanizations.items():
                if key in rows:
                    line = line.with_romanization(scheme, rows[key])
        lines.append(line)

    if paragraphs and not lines:
        raise c.corrupt("no <p> element has readable timing")
    logger.debug("ttml: %d paragraphs -> %d lines", len(paragraphs), len(lines))
    return c.document(lines)


def _read_head(c: Collector, root: ET.Element) -> tuple[dict[str, dict[str, str]], dict[str, dict[str, str]]]:
    translations: dict[str, dict[str, str]] = {}
    romanizations: dict[str, dict[str, str]] = {}
    for head in _children(root, "head"):
        for agent in _find_all(head, "agent"):
            agent_id = attr(agent, "id")
            for name in _children(agent, "name"):
                if agent_id and _text_of(name):
                    c.add_meta(f"agent:{agent_id}", _text_of(name))
        for meta in _find_all(head, "meta"):
            key, value = attr(meta, "key"), attr(meta, "value")
            if key and value:
                c.add_meta(key, value)
        for writer in _find_all(head, "songwriter"):
            c.add_meta("songwriter", _text_of(writer))
        for block in _find_all(head, "translation"):
            code = attr(block, "lang") or "und"
            rows = translations.setdefault(code, {})
            for row in _children(block, "text"):
                target = attr(row, "for")
                if target and _text_of(row):
                    rows[target] = _text_of(row)
        for block in _find_all(head, "transliteration"):
            code = attr(block, "lang") or "und-Latn"
            rows = romanizations.setdefault(code, {})
            for row in _children(block, "text"):
                target = attr(row, "for")
                if target and _text_of(row):
                    rows[target] = _text_of(row)
    return translations, romanizations


def _read_paragraph(
    c: Collector, p: ET.Element, index: int, line_timed: bool, options: ParseOptions
) -> LyricLine | None:
    where = f"<p> #{index}"
    try:
        begin = attr(p, "begin")
        end = attr(p, "end")
        line_start = parse_ttml_time(begin) if begin else None
        line_end = parse_ttml_time(end) if end else None
    except NumberError as e:
        c.warn(None, f"{where}: {e}")
        return None

    main: list[tuple[str, int, int]] = []
    background: list[tuple[str, int, int]] = []
    translations: dict[str, str] = {}
    romanization: dict[str, str] = {}
    plain: list[str] = [p.text or ""]

    for span in p:
        if local(span.tag) != "span":
            continue
        role = attr(span, "role")
        if role == ROLE_TRANSLATION:
            if _text_of(span):
                translations[attr(span, "lang") or options.translation_lang()] = _text_of(span)
        elif role == ROLE_ROMANIZATION:
            if _text_of(span):
                romanization[attr(span, "lang") or options.romanization_scheme] = _text_of(span)
        elif role == ROLE_BACKGROUND:
            for inner in span:
                if local(inner.tag) != "span":
                    continue
                inner_role = attr(inner, "role")
                if inner_role in (ROLE_TRANSLATION, ROLE_ROMANIZATION):
                    c.warn(None, f"{where}: background {inner_role} ignored")
                    continue
                timed = _timed_span(c, inner, where)
                if timed:
                    background.append(timed)
        else:
            timed = _timed_span(c, span, where)
            if timed:
                main.append(timed)
            plain.append(_text_of(span))
        plain.append(_tail(span))

    agent = attr(p, "agent")
    if line_timed or not (main or background):
        body = normalize_space("".join(plain))
        if not body:
            return None
        if line_start is None or line_end is None:
            c.warn(None, f"{where}: line without begin/end ignored")
            return None
        return LyricLine(
            start_ms=line_start,
            end_ms=max(line_start, line_end),
            text=body,
            agent_id=agent,
            translations=translations,
            romanization=romanization,
        )

    def warn(msg: str) -> None:
        c.warn(None, f"{where}: {msg}")

    track = syllables_from_spans(main, warn=warn)
    bg_spans = strip_background_parens(background) or background
    track += syllables_from_spans(bg_spans, background=True, warn=warn)
    if not track:
        return None
    return LyricLine.from_syllables(track, agent_id=agent, translations=translations, romanization=romanization)


def _timed_span(c: Collector, span: ET.Element, where: str) -> tuple[str, int, int] | None:
    text = (span.text or "") + _tail(span)
    begin, end = attr(span, "begin"), attr(span, "end")
    if not text or begin is None or end is None:
        return None
    try:
        return text, parse_ttml_time(begin), parse_ttml_time(end)
    except NumberError as e:
        c.warn(None, f"{where}: {e}")
        return None
