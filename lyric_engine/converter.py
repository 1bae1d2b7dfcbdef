"""
One-stop entry points: detect, parse, process, generate and convert lyric
files between the supported formats.
"""

from __future__ import annotations

import codecs
import logging
import re
from typing import Callable, Iterable

from .errors import Corrupt, EncodingFailure, Location, WrongFormat
from .formats import FormatKind
from .generators.apple_json import generate_apple_json
from .generators.ass import generate_ass
from .generators.enhanced_lrc import generate_enhanced_lrc
from .generators.krc import generate_krc
from .generators.lqe import generate_lqe
from .generators.lrc import generate_lrc
from .generators.lyl import generate_lyl
from .generators.lys import generate_lys
from .generators.qrc import generate_qrc
from .generators.spl import generate_spl
from .generators.ttml import generate_ttml
from .generators.yrc import generate_yrc
from .merge import TRANSLATION, auxiliary_document, merge_auxiliary
from .model import LyricDocument
from .options import GenerateConfig, ParseOptions, PipelineConfig
from .parsers.apple_json import parse_apple_json
from .parsers.ass import parse_ass
from .parsers.enhanced_lrc import parse_enhanced_lrc
from .parsers.krc import parse_krc
from .parsers.lqe import HEADER as LQE_HEADER
from .parsers.lqe import parse_lqe
from .parsers.lrc import parse_lrc
from .parsers.lyl import HEADER as LYL_HEADER
from .parsers.lyl import parse_lyl
from .parsers.lys import parse_lys
from .parsers.qrc import parse_qrc
from .parsers.spl import parse_spl
from .parsers.ttml import parse_ttml
from .parsers.yrc import parse_yrc
from .pipeline import DEFAULT_STAGES, ProcessorKind, run_pipeline

logger = logging.getLogger(__name__)

Parser = Callable[[str, "ParseOptions | None"], LyricDocument]
Generator = Callable[[LyricDocument, GenerateConfig], str]

PARSERS: dict[FormatKind, Parser] = {
    FormatKind.ASS: parse_ass,
    FormatKind.TTML: parse_ttml,
    FormatKind.APPLE_MUSIC_JSON: parse_apple_json,
    FormatKind.LYS: parse_lys,
    FormatKind.LRC: parse_lrc,
    FormatKind.ENHANCED_LRC: parse_enhanced_lrc,
    FormatKind.QRC: parse_qrc,
    FormatKind.YRC: parse_yrc,
    FormatKind.LYRICIFY_LINES: parse_lyl,
    FormatKind.SPL: parse_spl,
    FormatKind.LQE: parse_lqe,
    FormatKind.KRC: parse_krc,
}

GENERATORS: dict[FormatKind, Generator] = {
    FormatKind.ASS: generate_ass,
    FormatKind.TTML: generate_ttml,
    FormatKind.APPLE_MUSIC_JSON: generate_apple_json,
    FormatKind.LYS: generate_lys,
    FormatKind.LRC: generate_lrc,
    FormatKind.ENHANCED_LRC: generate_enhanced_lrc,
    FormatKind.QRC: generate_qrc,
    FormatKind.YRC: generate_yrc,
    FormatKind.LYRICIFY_LINES: generate_lyl,
    FormatKind.SPL: generate_spl,
    FormatKind.LQE: generate_lqe,
    FormatKind.KRC: generate_krc,
}

for _name, _table in (("parser", PARSERS), ("generator", GENERATORS)):
    _missing = set(FormatKind) - set(_table)
    if _missing:
        raise RuntimeError(f"no {_name} registered for {sorted(k.value for k in _missing)}")


# Decoding


def decode(data: bytes | str, fmt: str = "input") -> str:
    """UTF-8 (BOM optional), or UTF-16 when the data starts with a UTF-16 BOM."""
    if isinstance(data, str):
        return data
    encoding = "utf-16" if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)) else "utf-8-sig"
    try:
        return data.decode(encoding)
    except UnicodeDecodeError as e:
        raise Corrupt(fmt, f"not valid {encoding}: {e.reason}", Location(offset=e.start)) from e


# Detection

_CLOCK = r"\d{2,}:\d{2}[.:]\d{2,3}"
_LRC_LINE_RE = re.compile(rf"^\[{_CLOCK}\]")
_ELRC_WORD_RE = re.compile(rf"<{_CLOCK}>")
_SPL_STAMP_RE = re.compile(r"^\[\d{1,3}:\d{1,2}\.\d{1,6}\]")
_SPL_ONLY_RE = re.compile(r"[\[<](?:\d:\d{1,2}\.\d{1,6}|\d{1,3}:\d{1,2}\.(?:\d|\d{4,6}))[\]>]")
_KRC_LINE_RE = re.compile(r"^\[\d+,\d+\]<\d+,\d+,-?\d+>")
_YRC_LINE_RE = re.compile(r"^\[\d+,\d+\]\(\d+,\d+,-?\d+\)")
_QRC_LINE_RE = re.compile(r"^\[\d+,\d+\].*?\(\d+,\d+\)")
_LYS_LINE_RE = re.compile(r"^\[\d\].*?\(\d+,\d+\)")
_ASS_RE = re.compile(r"^\s*(?:\[Script Info\]|\[Events\]|Dialogue\s*:)", re.IGNORECASE | re.MULTILINE)


def _count(pattern: re.Pattern[str], lines: list[str]) -> int:
    return sum(1 for line in lines if pattern.search(line))


def detect_format(data: bytes | str) -> FormatKind | None:
    """
    Guess the format of `data`. Checks run in a fixed order and each one looks
    for markers the others cannot produce; None when nothing fits or two line
    syntaxes are equally likely. Plain LRC is only reported as Enhanced LRC
    when it carries `<mm:ss.xx>` word stamps.
    """
    try:
        text = decode(data)
    except Corrupt:
        return None
    stripped = text.strip()
    if not stripped:
        return None

    if stripped.startswith("{") and '"ttml"' in stripped:
        return FormatKind.APPLE_MUSIC_JSON
    if stripped.startswith("<"):
        if "LyricContent=" in stripped:
            return FormatKind.QRC
        if re.search(r"<(?:\w+:)?tt[\s>]", stripped):
            return FormatKind.TTML
        return None

    lines = [line.strip() for line in stripped.splitlines() if line.strip()]
    if lines[0].lower() == LQE_HEADER.lower():
        return FormatKind.LQE
    if _ASS_RE.search(stripped):
        return FormatKind.ASS
    if any(line.lower() == LYL_HEADER.lower() for line in lines):
        return FormatKind.LYRICIFY_LINES

    scores = {
        FormatKind.KRC: _count(_KRC_LINE_RE, lines),
        FormatKind.YRC: _count(_YRC_LINE_RE, lines),
        FormatKind.QRC: _count(_QRC_LINE_RE, lines) - _count(_YRC_LINE_RE, lines),
        FormatKind.LYS: _count(_LYS_LINE_RE, lines),
    }
    spl_only = _count(_SPL_ONLY_RE, lines)
    if spl_only:
        scores[FormatKind.SPL] = _count(_SPL_STAMP_RE, lines)
    else:
        elrc = sum(1 for line in lines if _LRC_LINE_RE.search(line) and _ELRC_WORD_RE.search(line))
        if elrc:
            scores[FormatKind.ENHANCED_LRC] = _count(_LRC_LINE_RE, lines)
        else:
            scores[FormatKind.LRC] = _count(_LRC_LINE_RE, lines)

    ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)
    best, best_score = ranked[0]
    if best_score <= 0:
        return None
    if len(ranked) > 1 and ranked[1][1] == best_score:
        logger.debug("detection ambiguous between %s and %s", best.value, ranked[1][0].value)
        return None
    return best


# Parse / generate


def parse(fmt: FormatKind | str, data: bytes | str, options: ParseOptions | None = None) -> LyricDocument:
    kind = _kind(fmt)
    text = decode(data, kind.display_name)
    doc = PARSERS[kind](text, options)
    logger.debug("parsed %s: %d lines, %d warnings", kind.value, len(doc.lines), len(doc.warnings))
    return doc


def generate_text(fmt: FormatKind | str, doc: LyricDocument, config: GenerateConfig | None = None) -> str:
    return GENERATORS[_kind(fmt)](doc, config or GenerateConfig())


def generate(fmt: FormatKind | str, doc: LyricDocument, config: GenerateConfig | None = None) -> bytes:
    config = config or GenerateConfig()
    text = generate_text(fmt, doc, config)
    try:
        return text.encode(config.encoding)
    except UnicodeEncodeError as e:
        raise EncodingFailure(config.encoding, f"{e.reason} at character {e.start}") from e
    except LookupError as e:
        raise EncodingFailure(config.encoding, str(e)) from e


def convert(
    data: bytes | str,
    target: FormatKind | str,
    source: FormatKind | str | None = None,
    options: ParseOptions | None = None,
    stages: Iterable[ProcessorKind] = DEFAULT_STAGES,
    pipeline_config: PipelineConfig | None = None,
    config: GenerateConfig | None = None,
) -> bytes:
    """Parse (detecting the source format when not given), run the pipeline and generate."""
    if source is None:
        source = detect_format(data)
        if source is None:
            raise WrongFormat("any supported format", "format detection failed; pass the source format")
    doc = parse(source, data, options)
    doc = run_pipeline(doc, stages, pipeline_config)
    return generate(target, doc, config)


def generate_translations(doc: LyricDocument, config: GenerateConfig | None = None) -> dict[str, bytes]:
    """One LRC file per translation language, timed like the lyric lines."""
    out: dict[str, bytes] = {}
    for lang in doc.translation_languages:
        aux = auxiliary_document(doc, TRANSLATION, lang).with_metadata(doc.metadata)
        out[lang] = generate(FormatKind.LRC, aux, config)
    return out


def _kind(fmt: FormatKind | str) -> FormatKind:
    if isinstance(fmt, FormatKind):
        return fmt
    kind = FormatKind.from_string(fmt)
    if kind is None:
        raise ValueError(f"Unknown lyric format {fmt!r}")
    return kind


__all__ = [
    "GENERATORS",
    "PARSERS",
    "convert",
    "decode",
    "detect_format",
    "generate",
    "generate_text",
    "generate_translations",
    "merge_auxiliary",
    "parse",
    "run_pipeline",
]
