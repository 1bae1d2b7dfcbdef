from __future__ import annotations

from xml.etree import ElementTree as ET

from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument, LyricLine, Syllable
from lyric_engine.options import GenerateConfig
from lyric_engine.parsers.ttml import (
    AMLL_NS,
    ITUNES_NS,
    ROLE_BACKGROUND,
    ROLE_ROMANIZATION,
    ROLE_TRANSLATION,
    TT_NS,
    TTM_NS,
    XML_NS,
)
from lyric_engine.util.timing import fmt_ttml_time

from ._common import Emitter, rounded, wrap_background

ET.register_namespace("", TT_NS)
ET.register_namespace("ttm", TTM_NS)
ET.register_namespace("itunes", ITUNES_NS)
ET.register_namespace("amll", AMLL_NS)

# canonical metadata key -> AMLL meta key
AMLL_KEYS = {
    "title": "musicName",
    "artist": "artists",
    "album": "album",
    "isrc": "isrc",
    "ncmmusicid": "ncmMusicId",
    "qqmusicid": "qqMusicId",
    "spotifyid": "spotifyId",
    "applemusicid": "appleMusicId",
}


def _tt(tag: str) -> str:
    return f"{{{TT_NS}}}{tag}"


def _time_attrs(el: ET.Element, start: int, end: int) -> None:
    el.set("begin", fmt_ttml_time(start))
    el.set("end", fmt_ttml_time(end))


def _spans(parent: ET.Element, words: list[tuple[str, int, int]]) -> None:
    last: ET.Element | None = None
    for text, start, end in words:
        body = text.rstrip()
        if not body:
            # a whitespace-only word becomes the space after the previous one
            if last is not None:
                last.tail = (last.tail or "") + text
                continue
            body = text
        span = ET.SubElement(parent, _tt("span"))
        _time_attrs(span, start, end)
        span.text = body
        if len(text) > len(body):
            span.tail = text[len(body):]
        last = span


def _line_key(index: int) -> str:
    return f"L{index}"


def _paragraph(div: ET.Element, line: LyricLine, index: int, e: Emitter, line_timed: bool) -> None:
    start, end = e.span(line.start_ms, line.end_ms)
    p = ET.SubElement(div, _tt("p"))
    _time_attrs(p, start, end)
    p.set(f"{{{ITUNES_NS}}}key", _line_key(index))
    if line.agent_id:
        p.set(f"{{{TTM_NS}}}agent", line.agent_id)

    if line_timed or not line.syllables:
        p.text = e.text(line.raw_text if line.syllables else line.text or "")
    else:
        _spans(p, rounded(list(line.main_syllables), e))
        background: list[Syllable] = wrap_background(line.background_syllables)
        if background:
            words = rounded(background, e)
            bg = ET.SubElement(p, _tt("span"), {f"{{{TTM_NS}}}role": ROLE_BACKGROUND})
            _time_attrs(bg, min(w[1] for w in words), max(w[2] for w in words))
            _spans(bg, words)

    if e.config.inline_translation:
        for role, values in ((ROLE_TRANSLATION, line.translations), (ROLE_ROMANIZATION, line.romanization)):
            for lang, value in values.items():
                span = ET.SubElement(p, _tt("span"), {f"{{{TTM_NS}}}role": role, f"{{{XML_NS}}}lang": lang})
                span.text = e.text(value)


def _head(root: ET.Element, doc: LyricDocument, e: Emitter) -> None:
    head = ET.SubElement(root, _tt("head"))
    metadata = ET.SubElement(head, _tt("metadata"))
    for agent in sorted(doc.agents):
        el = ET.SubElement(metadata, f"{{{TTM_NS}}}agent", {"type": "person", f"{{{XML_NS}}}id": agent})
        name = doc.first(f"agent:{agent}")
        if name:
            ET.SubElement(el, f"{{{TTM_NS}}}name", {"type": "full"}).text = name

    for key, values in doc.metadata.items():
        if key.startswith("agent:") or key == "songwriter":
            continue
        for value in values:
            ET.SubElement(metadata, f"{{{AMLL_NS}}}meta", {"key": AMLL_KEYS.get(key, key), "value": value})

    songwriters = doc.metadata.get("songwriter", ())
    aux = not e.config.inline_translation and (doc.translation_languages or doc.romanization_schemes)
    if not songwriters and not aux:
        return
    itunes = ET.SubElement(metadata, f"{{{ITUNES_NS}}}iTunesMetadata")
    if songwriters:
        writers = ET.SubElement(itunes, f"{{{ITUNES_NS}}}songwriters")
        for name in songwriters:
            ET.SubElement(writers, f"{{{ITUNES_NS}}}songwriter").text = name
    if not aux:
        return
    for block, item, codes, attr in (
        ("translations", "translation", doc.translation_languages, "translations"),
        ("transliterations", "transliteration", doc.romanization_schemes, "romanization"),
    ):
        if not codes:
            continue
        container = ET.SubElement(itunes, f"{{{ITUNES_NS}}}{block}")
        for code in codes:
            entry = ET.SubElement(container, f"{{{ITUNES_NS}}}{item}", {f"{{{XML_NS}}}lang": code})
            for index, line in enumerate(doc.lines, start=1):
                value = getattr(line, attr).get(code)
                if value:
                    ET.SubElement(entry, f"{{{ITUNES_NS}}}text", {"for": _line_key(index)}).text = e.text(value)


def build_tree(doc: LyricDocument, config: GenerateConfig, fmt: FormatKind = FormatKind.TTML) -> ET.Element:
    e = Emitter(fmt, config)
    line_timed = not doc.is_syllable_timed
    root = ET.Element(_tt("tt"), {f"{{{ITUNES_NS}}}timing": "Line" if line_timed else "Word"})
    language = doc.first("language")
    if language:
        root.set(f"{{{XML_NS}}}lang", language)
    _head(root, doc, e)

    end = e.t(max((line.end_ms for line in doc.lines), default=0))
    body = ET.SubElement(root, _tt("body"), {"dur": fmt_ttml_time(end)})
    if doc.lines:
        div = ET.SubElement(body, _tt("div"))
        _time_attrs(div, e.t(doc.lines[0].start_ms), end)
        for index, line in enumerate(doc.lines, start=1):
            _paragraph(div, line, index, e, line_timed)
    return root


def generate_ttml(doc: LyricDocument, config: GenerateConfig) -> str:
    """
    Apple/AMLL flavoured TTML built with ElementTree, so escaping is handled
    by the serializer. Word-timed documents get `<span>` per syllable, a
    `ttm:role="x-bg"` span for background vocals and inline `x-translation` /
    `x-roman` spans; with `inline_translation` off the translations move into
    the `iTunesMetadata` block keyed by `itunes:key`.
    """
    root = build_tree(doc, config)
    return ET.tostring(root, encoding="unicode") + config.newline
