from __future__ import annotations

import logging
import re
from dataclasses import replace
from functools import lru_cache
from typing import Mapping, Protocol, runtime_checkable

from opencc import OpenCC

from lyric_engine.model import LyricDocument, LyricLine, Syllable
from lyric_engine.options import ChineseMode, PipelineConfig
from lyric_engine.util.text import count_scripts, graphemes

logger = logging.getLogger(__name__)

# target tag -> OpenCC config
VARIANT_CONFIGS = {
    "zh-hans": "t2s",
    "zh-cn": "t2s",
    "zh-sg": "t2s",
    "zh-hant": "s2t",
    "zh-hant-tw": "s2tw",
    "zh-tw": "s2tw",
    "zh-hant-hk": "s2hk",
    "zh-hk": "s2hk",
}
# OpenCC config -> language tag of its output
CONFIG_TAGS = {
    "s2t": "zh-Hant",
    "t2s": "zh-Hans",
    "s2tw": "zh-Hant-TW",
    "s2twp": "zh-Hant-TW",
    "s2hk": "zh-Hant-HK",
    "tw2s": "zh-Hans",
    "tw2sp": "zh-Hans",
    "hk2s": "zh-Hans",
    "t2tw": "zh-Hant-TW",
    "t2hk": "zh-Hant-HK",
}

MAX_PASSES = 8


@runtime_checkable
class Ruleset(Protocol):
    name: str

    def convert(self, text: str) -> str: ...


class OpenCCRuleset:
    def __init__(self, config: str) -> None:
        self.name = config
        self._cc = OpenCC(config)

    def convert(self, text: str) -> str:
        return self._cc.convert(text)


class MappingRuleset:
    """Phrase table applied longest match first."""

    def __init__(self, table: Mapping[str, str], name: str = "mapping") -> None:
        self.name = name
        self.table = dict(table)
        keys = sorted((k for k in self.table if k), key=len, reverse=True)
        self._pattern = re.compile("|".join(re.escape(k) for k in keys)) if keys else None

    def convert(self, text: str) -> str:
        if self._pattern is None:
            return text
        return self._pattern.sub(lambda m: self.table[m.group(0)], text)


class FixedPointConverter:
    """
    Applies a ruleset until the text stops changing, so converting twice gives
    the same result as converting once. Results are memoized; the memo is
    shared between threads and only ever filled through `setdefault`.
    """

    def __init__(self, ruleset: Ruleset) -> None:
        self.ruleset = ruleset
        self._memo: dict[str, str] = {}

    def __call__(self, text: str) -> str:
        hit = self._memo.get(text)
        if hit is not None:
            return hit
        current = text
        for _ in range(MAX_PASSES):
            converted = self.ruleset.convert(current)
            if converted == current:
                break
            current = converted
        else:
            logger.warning("%s: no fixed point after %d passes for %r", self.ruleset.name, MAX_PASSES, text[:40])
        return self._memo.setdefault(text, current)


def config_for_variant(variant: str) -> str:
    """`zh-Hant-TW` -> `s2tw`; OpenCC config names pass through."""
    key = variant.strip().lower()
    if key in VARIANT_CONFIGS:
        return VARIANT_CONFIGS[key]
    if key in CONFIG_TAGS:
        return key
    raise ValueError(f"Unknown Chinese variant {variant!r}; expected one of {sorted(VARIANT_CONFIGS)}")


def target_tag(variant: str) -> str:
    return CONFIG_TAGS[config_for_variant(variant)]


@lru_cache(maxsize=None)
def opencc_converter(config: str) -> FixedPointConverter:
    return FixedPointConverter(OpenCCRuleset(config))


@lru_cache(maxsize=32)
def _custom_converter(ruleset: Ruleset) -> FixedPointConverter:
    return FixedPointConverter(ruleset)


def _has_han(text: str) -> bool:
    return bool(count_scripts(text).get("han"))


def convert_track(track: list[Syllable], convert: FixedPointConverter) -> list[Syllable]:
    """
    Convert a track as a whole and hand the result back out syllable by
    syllable when the grapheme count is unchanged; otherwise convert each
    syllable on its own.
    """
    whole = "".join(s.text for s in track)
    if not _has_han(whole):
        return track
    converted = graphemes(convert(whole))
    counts = [len(graphemes(s.text)) for s in track]
    if len(converted) == len(graphemes(whole)) == sum(counts):
        out = []
        pos = 0
        for s, n in zip(track, counts):
            out.append(s.with_text("".join(converted[pos : pos + n])))
            pos += n
        return out
    return [s.with_text(convert(s.text)) for s in track]


def _convert_values(values: Mapping[str, str], convert: FixedPointConverter) -> dict[str, str]:
    return {key: convert(value) if _has_han(value) else value for key, value in values.items()}


def convert_line(line: LyricLine, convert: FixedPointConverter) -> LyricLine:
    """Lyric text, translations and romanization, converted in place."""
    if not line.syllables:
        if line.text and _has_han(line.text):
            line = line.with_text(convert(line.text))
    else:
        main = convert_track(list(line.main_syllables), convert)
        background = convert_track(list(line.background_syllables), convert)
        line = line.with_syllables(main + background)
    translations = _convert_values(line.translations, convert)
    romanization = _convert_values(line.romanization, convert)
    if translations != line.translations or romanization != line.romanization:
        line = replace(line, translations=translations, romanization=romanization)
    return line


def convert_chinese(doc: LyricDocument, config: PipelineConfig) -> LyricDocument:
    """
    Convert between Simplified and Traditional Chinese.

    `replace` rewrites lyric text, translations and romanization in place;
    `add_as_translation` keeps the lyric text and stores the converted text as
    a translation tagged with the target variant (lines that already have that
    translation are left alone).
    """
    if config.ruleset is not None:
        convert = _custom_converter(config.ruleset)
        tag = target_tag(config.chinese_variant) if config.chinese_variant else config.ruleset.name
    else:
        if not config.chinese_variant:
            return doc
        convert = opencc_converter(config_for_variant(config.chinese_variant))
        tag = target_tag(config.chinese_variant)

    lines = []
    changed = 0
    for line in doc.lines:
        if config.chinese_mode is ChineseMode.ADD_AS_TRANSLATION:
            text = line.main_text
            if tag not in line.translations and _has_han(text):
                converted = convert(text)
                if converted != text:
                    line = line.with_translation(tag, converted)
                    changed += 1
        else:
            new = convert_line(line, convert)
            if new != line:
                changed += 1
            line = new
        lines.append(line)
    logger.debug("chinese (%s, %s): %d/%d lines changed", tag, config.chinese_mode.value, changed, len(lines))
    return doc.with_lines(lines)
