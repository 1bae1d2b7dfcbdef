from __future__ import annotations

import logging
import re
from typing import Iterable

from lyric_engine.errors import Unrepresentable
from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument, LyricLine, Syllable
from lyric_engine.options import BackgroundMode, GenerateConfig
from lyric_engine.util.timing import Resolution, coarsest, round_ms, round_span

logger = logging.getLogger(__name__)

# canonical metadata key -> LRC tag, in header order
HEADER_TAGS = {
    "title": "ti",
    "artist": "ar",
    "album": "al",
    "author": "by",
    "language": "language",
    "offset": "offset",
}
_TAG_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class Emitter:
    """
    Per-call helper shared by the generators: rounding to the effective
    resolution, text checks, and the lossy/strict decision.
    """

    def __init__(self, fmt: FormatKind, config: GenerateConfig, collision: re.Pattern[str] | None = None) -> None:
        self.fmt = fmt
        self.config = config
        self.collision = collision
        self.resolution: Resolution = coarsest(config.timestamp_resolution, fmt.native_resolution)
        self._dropped: set[str] = set()

    def lossy(self, feature: str) -> None:
        """Raise Unrepresentable, or log once and carry on when lossy output is allowed."""
        if not self.config.allow_lossy:
            raise Unrepresentable(self.fmt.display_name, feature)
        if feature not in self._dropped:
            self._dropped.add(feature)
            logger.warning("%s output drops %s", self.fmt.display_name, feature)

    def t(self, ms: int) -> int:
        return round_ms(ms, self.resolution)

    def span(self, start_ms: int, end_ms: int) -> tuple[int, int]:
        return round_span(start_ms, end_ms, self.resolution)

    def text(self, text: str) -> str:
        if "\n" in text or "\r" in text:
            self.lossy("line breaks inside text")
            text = " ".join(text.splitlines())
        if self.collision is not None and self.collision.search(text):
            self.lossy(f"text that looks like timing syntax ({text[:40]!r})")
            text = self.collision.sub(lambda m: m.group(0)[1:], text)
        return text

    def join(self, rows: Iterable[str]) -> str:
        nl = self.config.newline
        return nl.join(rows) + nl

    # document-level capability checks

    def check_voices(self, doc: LyricDocument, limit: int = 1) -> None:
        used = {line.agent_id for line in doc.lines if line.agent_id is not None}
        if len(used) > limit:
            self.lossy(f"{len(used)} agents (at most {limit})")

    def check_translations(self, doc: LyricDocument, translations: bool, romanization: bool) -> None:
        """Only called when translations are meant to be inlined."""
        if not self.config.inline_translation:
            return
        if doc.translation_languages and not translations:
            self.lossy("translations")
        if doc.romanization_schemes and not romanization:
            self.lossy("romanization")


def header_tags(doc: LyricDocument, e: Emitter) -> list[tuple[str, str]]:
    """
    LRC-style `(tag, value)` pairs: ti ar al by language offset, then the rest.
    Keys that cannot be written as a tag name (agent names, non-ASCII keys) are lossy.
    """
    out: list[tuple[str, str]] = []
    keys = [k for k in HEADER_TAGS if k in doc.metadata]
    keys += [k for k in doc.metadata if k not in HEADER_TAGS]
    for key in keys:
        tag = HEADER_TAGS.get(key, key)
        if not _TAG_NAME_RE.match(tag):
            e.lossy(f"metadata {key!r}")
            continue
        value = "/".join(" ".join(v.split()) for v in doc.metadata[key])
        if value:
            out.append((tag, value))
    return out


def header_lines(doc: LyricDocument, e: Emitter) -> list[str]:
    return [f"[{tag}:{value}]" for tag, value in header_tags(doc, e)]


def line_track(line: LyricLine) -> list[Syllable]:
    """Main syllables, or a single syllable spanning a line-timed line."""
    if line.syllables:
        return list(line.main_syllables)
    return [Syllable(line.text or " ", line.start_ms, line.end_ms)]


def wrap_background(track: Iterable[Syllable]) -> list[Syllable]:
    syls = list(track)
    if not syls:
        return syls
    syls[0] = syls[0].with_text("(" + syls[0].text)
    syls[-1] = syls[-1].with_text(syls[-1].text + ")")
    return syls


def merged_track(line: LyricLine) -> list[Syllable]:
    """
    Main syllables followed by the background ones in parentheses, pushed
    later where needed so the single track stays ordered.
    """
    out = line_track(line)
    cursor = out[-1].end_ms if out else line.start_ms
    for s in wrap_background(line.background_syllables):
        start = max(s.start_ms, cursor)
        out.append(Syllable(s.text, start, max(start, s.end_ms)))
        cursor = out[-1].end_ms
    return out


def single_track_lines(line: LyricLine, mode: BackgroundMode) -> list[list[Syllable]]:
    """
    Tracks to write for one line in formats with a single syllable track:
    one merged track, or the main track then the background as its own line.
    """
    if mode is BackgroundMode.MERGE:
        return [merged_track(line)]
    tracks = [line_track(line)]
    if mode is BackgroundMode.SEPARATE and line.background_syllables:
        tracks.append(wrap_background(line.background_syllables))
    return tracks


def plain_lines(line: LyricLine, mode: BackgroundMode) -> list[tuple[int, int, str]]:
    """`(start, end, text)` rows for line-level formats."""
    main = line.main_text
    bg = line.background_text
    if not bg or mode is BackgroundMode.IGNORE:
        main_start, main_end = _main_bounds(line)
        return [(main_start, main_end, main)]
    if mode is BackgroundMode.MERGE:
        text = f"{main} ({bg})" if main else f"({bg})"
        return [(line.start_ms, line.end_ms, text)]
    bg_syls = line.background_syllables
    rows = []
    if main:
        rows.append((*_main_bounds(line), main))
    rows.append((bg_syls[0].start_ms, max(s.end_ms for s in bg_syls), f"({bg})"))
    return rows


def _main_bounds(line: LyricLine) -> tuple[int, int]:
    main = line.main_syllables
    if not main:
        return line.start_ms, line.end_ms
    return main[0].start_ms, main[-1].end_ms


def rounded(track: Iterable[Syllable], e: Emitter) -> list[tuple[str, int, int]]:
    """`(text, start, end)` rounded to the output resolution; rounding never reorders a track."""
    out: list[tuple[str, int, int]] = []
    cursor = 0
    for s in track:
        start, end = e.span(s.start_ms, s.end_ms)
        if out:
            start = max(start, cursor)
            end = max(start, end)
        out.append((e.text(s.text), start, end))
        cursor = end
    return out
