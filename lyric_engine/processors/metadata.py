from __future__ import annotations

import logging
import re
from typing import Iterable, Mapping

from lyric_engine.model import LyricDocument
from lyric_engine.options import PipelineConfig

logger = logging.getLogger(__name__)

# alias (lowercase) -> canonical key
KEY_ALIASES: dict[str, str] = {
    # title
    "ti": "title",
    "title": "title",
    "musicname": "title",
    "songname": "title",
    "曲名": "title",
    "歌名": "title",
    # artist
    "ar": "artist",
    "artist": "artist",
    "artists": "artist",
    "singer": "artist",
    "歌手": "artist",
    "演唱": "artist",
    # album
    "al": "album",
    "album": "album",
    "专辑": "album",
    "專輯": "album",
    # credits
    "lyricist": "lyricist",
    "lyricists": "lyricist",
    "lyrics": "lyricist",
    "作词": "lyricist",
    "作詞": "lyricist",
    "composer": "composer",
    "composers": "composer",
    "作曲": "composer",
    "songwriter": "songwriter",
    "songwriters": "songwriter",
    # misc
    "by": "author",
    "language": "language",
    "lang": "language",
    "offset": "offset",
    "length": "length",
    "isrc": "isrc",
    "ncmmusicid": "ncmmusicid",
    "qqmusicid": "qqmusicid",
    "spotifyid": "spotifyid",
    "applemusicid": "applemusicid",
}

_OFFSET_RE = re.compile(r"^[+-]?\d+$")


AGENT_PREFIX = "agent:"


def canonical_key(key: str) -> str:
    """Lowercased alias lookup; the id in `agent:<id>` keeps its case, like the agent ids themselves."""
    key = key.strip()
    if key[: len(AGENT_PREFIX)].lower() == AGENT_PREFIX:
        return AGENT_PREFIX + key[len(AGENT_PREFIX) :].strip()
    low = key.lower()
    return KEY_ALIASES.get(low, low)


def _union(*groups: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for values in groups:
        for v in values:
            v = v.strip()
            if v:
                seen.setdefault(v, None)
    return tuple(seen)


def merge_metadata(
    first: Mapping[str, Iterable[str]], second: Mapping[str, Iterable[str]]
) -> dict[str, tuple[str, ...]]:
    """
    Union two metadata mappings under canonical keys.

    Values are de-duplicated by exact (stripped) string match, so the resulting
    value sets do not depend on argument order; only their ordering does.
    """
    merged: dict[str, list[Iterable[str]]] = {}
    for source in (first, second):
        for key, values in source.items():
            merged.setdefault(canonical_key(key), []).append(tuple(values))
    out = {key: _union(*groups) for key, groups in merged.items()}
    return {k: v for k, v in out.items() if v}


def process_metadata(doc: LyricDocument, config: PipelineConfig) -> LyricDocument:
    metadata = merge_metadata(doc.metadata, {})
    warnings: list[str] = []

    offsets = metadata.get("offset")
    if offsets:
        valid = tuple(v.lstrip("+") for v in offsets if _OFFSET_RE.match(v))
        if len(valid) != len(offsets):
            warnings.append(f"Dropped non-numeric offset values: {[v for v in offsets if not _OFFSET_RE.match(v)]}")
        if valid:
            metadata["offset"] = valid
        else:
            del metadata["offset"]

    for key, values in config.metadata_defaults.items():
        ckey = canonical_key(key)
        if ckey not in metadata:
            defaults = _union(values)
            if defaults:
                metadata[ckey] = defaults

    logger.debug("metadata: %d keys -> %d canonical keys", len(doc.metadata), len(metadata))
    return doc.with_metadata(metadata).add_warnings(*warnings)
