from __future__ import annotations

import logging
import re
from typing import Callable, Iterable

from lyric_engine.errors import Corrupt, Location, WrongFormat
from lyric_engine.model import LyricDocument, LyricLine, Syllable
from lyric_engine.processors.metadata import canonical_key

logger = logging.getLogger(__name__)

# [ti:Title], [ar:Artist], ... (a key starts with a letter, so timestamps never match)
META_TAG_RE = re.compile(r"^\[([A-Za-z_][A-Za-z0-9_]*):(.*)\]$")


class Collector:
    """Mutable scratch state shared by the parsers while reading one input."""

    def __init__(self, fmt: str) -> None:
        self.fmt = fmt
        self.metadata: dict[str, list[str]] = {}
        self.warnings: list[str] = []

    def warn(self, line_no: int | None, message: str) -> None:
        where = f"line {line_no}: " if line_no is not None else ""
        text = f"{self.fmt} {where}{message}"
        logger.debug("dropped record: %s", text)
        self.warnings.append(text)

    def add_meta(self, key: str, value: str) -> None:
        value = value.strip()
        key = canonical_key(key)
        if not key or not value:
            return
        values = self.metadata.setdefault(key, [])
        if value not in values:
            values.append(value)

    def meta_tag(self, line: str) -> bool:
        """Store an `[key:value]` line; False when the line is not a metadata tag."""
        m = META_TAG_RE.match(line.strip())
        if not m:
            return False
        self.add_meta(m.group(1), m.group(2))
        return True

    def corrupt(self, reason: str, line_no: int | None = None) -> Corrupt:
        return Corrupt(self.fmt, reason, Location(line=line_no))

    def wrong_format(self, reason: str) -> WrongFormat:
        return WrongFormat(self.fmt, reason)

    def document(self, lines: Iterable[LyricLine]) -> LyricDocument:
        lines = finalize_lines(lines, self.warnings)
        return LyricDocument.build(lines, metadata=self.metadata, warnings=self.warnings)


def finalize_lines(lines: Iterable[LyricLine], warnings: list[str]) -> list[LyricLine]:
    """
    Sort lines by start time and clip an agent's line that runs into that
    agent's next line. Lines without an agent are left as they are.
    """
    ordered = sorted(lines, key=lambda l: l.start_ms)
    last_index: dict[str, int] = {}
    for i, line in enumerate(ordered):
        agent = line.agent_id
        if agent is None:
            continue
        prev_i = last_index.get(agent)
        if prev_i is not None and ordered[prev_i].end_ms > line.start_ms:
            ordered[prev_i] = clip_line(ordered[prev_i], line.start_ms)
            warnings.append(
                f"Line at {ordered[prev_i].start_ms}ms clipped to {line.start_ms}ms "
                f"to avoid overlapping the next line of agent {agent!r}"
            )
        last_index[agent] = i
    return ordered


def clip_line(line: LyricLine, cut_ms: int) -> LyricLine:
    if not line.syllables:
        return line.with_timing(line.start_ms, max(line.start_ms, min(line.end_ms, cut_ms)))
    clipped = [
        s.with_timing(min(s.start_ms, cut_ms), min(s.end_ms, cut_ms)) for s in line.syllables
    ]
    return line.with_syllables(clipped)


def syllables_from_spans(
    spans: Iterable[tuple[str, int, int]],
    background: bool = False,
    warn: Callable[[str], None] | None = None,
) -> list[Syllable]:
    """
    Build an ordered track from (text, start, end) triples.

    Zero-length whitespace separators written as `(0,0)` are moved to the end
    of the preceding syllable. A syllable that starts before its predecessor
    ends is pushed to that end, and one ending before its start becomes
    zero-length (both reported through `warn`).
    """
    out: list[Syllable] = []
    for text, start, end in spans:
        if not text:
            continue
        if text.isspace() and start == 0 and end == 0 and out:
            start = end = out[-1].end_ms
        if end < start:
            if warn is not None:
                warn(f"syllable {text!r} ends before it starts ({start} > {end}), made zero-length")
            end = start
        if out and start < out[-1].end_ms:
            if warn is not None:
                warn(f"syllable {text!r} at {start}ms overlaps the previous one, moved to {out[-1].end_ms}ms")
            start = out[-1].end_ms
            end = max(start, end)
        out.append(Syllable(text=text, start_ms=start, end_ms=end, is_background=background))
    return out


def strip_background_parens(spans: list[tuple[str, int, int]]) -> list[tuple[str, int, int]] | None:
    """
    If the whole run is wrapped in `(...)`, return it with the outer parentheses
    removed, otherwise None.
    """
    texts = [t for t, _, _ in spans if t.strip()]
    if not texts:
        return None
    first_i = next(i for i, (t, _, _) in enumerate(spans) if t.strip())
    last_i = max(i for i, (t, _, _) in enumerate(spans) if t.strip())
    first_text = spans[first_i][0].lstrip()
    last_text = spans[last_i][0].rstrip()
    if not (first_text.startswith(("(", "（")) and last_text.endswith((")", "）"))):
        return None
    out = list(spans)
    if first_i == last_i:
        inner = first_text[1:-1]
        _, s, e = out[first_i]
        out[first_i] = (inner, s, e)
    else:
        _, s, e = out[first_i]
        out[first_i] = (first_text[1:], s, e)
        _, s, e = out[last_i]
        out[last_i] = (last_text[:-1], s, e)
    return [span for span in out if span[0]]


def attach_background(lines: list[LyricLine], spans: list[tuple[str, int, int]]) -> bool:
    """
    Attach a background run to the previous line. Returns False when it has to
    stand on its own (no previous syllable line, or that line already has a
    background track).
    """
    if not lines or not lines[-1].syllables or lines[-1].background_syllables:
        return False
    track = syllables_from_spans(spans, background=True)
    if not track:
        return True
    prev = lines[-1]
    lines[-1] = prev.with_syllables(list(prev.main_syllables) + track)
    return True
