from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from lyric_engine.model import LyricDocument
from lyric_engine.options import PipelineConfig

from .metadata import merge_metadata

logger = logging.getLogger(__name__)

_VALUE_SPLIT_RE = re.compile(r"\s*[/、,，&]\s*")


@dataclass(frozen=True, slots=True)
class StripRule:
    """Credit labels that, followed by `:` and names, make a whole line metadata for `key`."""

    key: str
    labels: tuple[str, ...]
    pattern: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        alternatives = []
        for label in sorted(self.labels, key=len, reverse=True):
            sep = r"\s*[:：]?\s*" if label.lower().endswith(" by") else r"\s*[:：]\s*"
            alternatives.append(re.escape(label) + sep)
        compiled = re.compile(rf"^\s*(?:{'|'.join(alternatives)})(?P<value>\S.*?)\s*$", re.IGNORECASE)
        object.__setattr__(self, "pattern", compiled)

    def match(self, text: str) -> tuple[str, ...] | None:
        m = self.pattern.match(text)
        if not m:
            return None
        values = tuple(v for v in _VALUE_SPLIT_RE.split(m.group("value")) if v)
        return values or None


DEFAULT_STRIP_RULES: tuple[StripRule, ...] = (
    StripRule("lyricist", ("作词", "作詞", "词", "詞", "作詞家", "작사", "Lyrics", "Lyricist", "Lyrics by")),
    StripRule("composer", ("作曲", "曲", "作曲家", "작곡", "Composer", "Composed by", "Music by")),
    StripRule("songwriter", ("词曲", "詞曲", "Written by", "Songwriter", "Songwriters")),
    StripRule("arranger", ("编曲", "編曲", "편곡", "Arranger", "Arranged by")),
    StripRule("producer", ("制作人", "製作人", "监制", "監製", "프로듀서", "Producer", "Produced by")),
    StripRule("artist", ("演唱", "歌手", "原唱", "Vocals", "Singer")),
    StripRule("mixing", ("混音", "Mixing", "Mixed by")),
    StripRule("mastering", ("母带", "母帶", "Mastering", "Mastered by")),
)


def strip_metadata_lines(doc: LyricDocument, config: PipelineConfig) -> LyricDocument:
    """
    Remove credit lines such as `作词：A/B` or `Composed by C` and fold them into
    metadata. Only lines whose entire text matches a rule are touched.
    """
    rules = config.strip_rules if config.strip_rules is not None else DEFAULT_STRIP_RULES
    found: dict[str, list[str]] = {}
    kept = []
    for line in doc.lines:
        text = line.main_text.strip()
        hit = None
        for rule in rules:
            values = rule.match(text)
            if values:
                hit = (rule.key, values)
                break
        if hit is None:
            kept.append(line)
            continue
        found.setdefault(hit[0], []).extend(hit[1])

    if not found:
        return doc
    logger.debug("stripped %d credit lines", len(doc.lines) - len(kept))
    return doc.with_lines(kept).with_metadata(merge_metadata(doc.metadata, found))
