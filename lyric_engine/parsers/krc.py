from __future__ import annotations

import base64
import binascii
import json
import re

from lyric_engine.model import LyricDocument, LyricLine
from lyric_engine.options import ParseOptions
from lyric_engine.util.numbers import NumberError, parse_int
from lyric_engine.util.text import normalize_space, split_lines

from ._common import Collector, syllables_from_spans

_LINE_RE = re.compile(r"^\[(\d+),(\d+)\](.*)$")
_WORD_RE = re.compile(r"<(\d+),(\d+),-?\d+>([^<]*)")
_LANGUAGE_RE = re.compile(r"^\[language:([A-Za-z0-9+/=\s]*)\]$")

TRANSLATION_TYPE = 1
ROMANIZATION_TYPE = 0
DEFAULT_TRANSLATION_LANG = "zh-Hans"
DEFAULT_ROMANIZATION_SCHEME = "ja-Latn"


def _read_language_block(c: Collector, payload: str, line_no: int) -> tuple[list[str], list[str]]:
    """
    Decode `[language:BASE64]`:
    {"content": [{"type": 1, "lyricContent": [["line"], ...]}, {"type": 0, ...}]}
    """
    translations: list[str] = []
    romanizations: list[str] = []
    try:
        data = json.loads(base64.b64decode("".join(payload.split()), validate=True).decode("utf-8"))
        entries = data.get("content", [])
        for entry in entries:
            rows = ["".join(str(part) for part in row) for row in entry.get("lyricContent", [])]
            if entry.get("type") == TRANSLATION_TYPE:
                translations = rows
            elif entry.get("type") == ROMANIZATION_TYPE:
                romanizations = rows
    except (binascii.Error, UnicodeDecodeError, ValueError, AttributeError, TypeError) as e:
        c.warn(line_no, f"unreadable [language:] block ignored: {e}")
    return translations, romanizations


def parse_krc(text: str, options: ParseOptions | None = None) -> LyricDocument:
    """
    `[line_start,line_duration]<offset,duration,0>word<offset,duration,0>word`

    Word offsets are relative to the line start. Translations and romanization
    live in a base64 JSON `[language:...]` tag, one row per lyric line.
    """
    options = options or ParseOptions()
    c = Collector("KRC")
    lines: list[LyricLine] = []
    translations: list[str] = []
    romanizations: list[str] = []
    timed_lines = 0

    for line_no, raw in enumerate(split_lines(text), start=1):
        line = raw.strip()
        if not line:
            continue
        lang = _LANGUAGE_RE.match(line)
        if lang:
            translations, romanizations = _read_language_block(c, lang.group(1), line_no)
            continue
        m = _LINE_RE.match(line)
        if not m:
            if not c.meta_tag(line):
                c.warn(line_no, f"unrecognized line ignored: {line[:40]!r}")
            continue
        timed_lines += 1
        try:
            line_start = parse_int(m.group(1), field="line start")
            line_end = line_start + parse_int(m.group(2), field="line duration")
            spans = []
            for w in _WORD_RE.finditer(m.group(3)):
                start = line_start + parse_int(w.group(1), field="word offset")
                spans.append((w.group(3), start, start + parse_int(w.group(2), field="word duration")))
        except NumberError as e:
            c.warn(line_no, str(e))
            continue

        if not spans:
            body = m.group(3).strip()
            if body:
                lines.append(LyricLine(start_ms=line_start, end_ms=line_end, text=body))
            else:
                c.warn(line_no, "line without words ignored")
            continue
        track = syllables_from_spans(spans, warn=lambda msg, n=line_no: c.warn(n, msg))
        if track:
            lines.append(LyricLine.from_syllables(track))

    if not timed_lines:
        raise c.wrong_format("no [start,duration] lines found")

    trans_lang = options.translation_lang(DEFAULT_TRANSLATION_LANG)
    for i, line in enumerate(lines):
        if i < len(translations) and normalize_space(translations[i]):
            line = line.with_translation(trans_lang, normalize_space(translations[i]))
        if i < len(romanizations) and normalize_space(romanizations[i]):
            line = line.with_romanization(DEFAULT_ROMANIZATION_SCHEME, normalize_space(romanizations[i]))
        lines[i] = line
    if len(translations) > len(lines) or len(romanizations) > len(lines):
        c.warn(None, "[language:] block has more rows than lyric lines; extra rows ignored")
    return c.document(lines)
