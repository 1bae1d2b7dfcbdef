from __future__ import annotations

from collections import Counter

import regex

_GRAPHEME_RE = regex.compile(r"\X")
# Scripts written without spaces are split per grapheme, everything else per word/space run.
_SEGMENT_RE = regex.compile(
    r"[\p{Han}\p{Hiragana}\p{Katakana}\p{Thai}\p{Lao}\p{Khmer}]\p{M}*|\s+|[^\s\p{Han}\p{Hiragana}\p{Katakana}\p{Thai}\p{Lao}\p{Khmer}]+"
)
_SCRIPT_RES = {
    "han": regex.compile(r"\p{Han}"),
    "kana": regex.compile(r"[\p{Hiragana}\p{Katakana}]"),
    "hangul": regex.compile(r"\p{Hangul}"),
    "latin": regex.compile(r"\p{Latin}"),
    "cyrillic": regex.compile(r"\p{Cyrillic}"),
}
_LETTER_RE = regex.compile(r"\p{L}")


def split_lines(text: str) -> list[str]:
    """Split on any newline convention, dropping a leading BOM."""
    return text.lstrip("\ufeff").splitlines()


def normalize_space(text: str) -> str:
    return " ".join(text.split())


def graphemes(text: str) -> list[str]:
    return _GRAPHEME_RE.findall(text)


def segments(text: str) -> list[str]:
    """Word-ish segments: a CJK/Thai grapheme, a whitespace run or a run of other characters."""
    return _SEGMENT_RE.findall(text)


def word_count(text: str) -> int:
    return sum(1 for s in segments(text) if not s.isspace())


def count_scripts(text: str) -> Counter[str]:
    counts: Counter[str] = Counter()
    for name, pattern in _SCRIPT_RES.items():
        n = len(pattern.findall(text))
        if n:
            counts[name] = n
    return counts


def letter_count(text: str) -> int:
    return len(_LETTER_RE.findall(text))


def is_latin_only(text: str) -> bool:
    letters = letter_count(text)
    return letters > 0 and count_scripts(text).get("latin", 0) == letters
