from __future__ import annotations

import logging
from typing import Sequence

from lyric_engine.model import LyricDocument, LyricLine, Syllable
from lyric_engine.options import PipelineConfig

logger = logging.getLogger(__name__)


def smooth_syllables(track: Sequence[Syllable], threshold_ms: int) -> list[Syllable]:
    """
    Close small gaps and overlaps between neighbouring syllables.

    Each boundary whose gap is in (0, threshold] or negative moves to the
    floor of the midpoint of the original pair, clamped to
    [left.start, right.end]. Boundaries are computed from the original
    timings, so one pass is enough and the result does not depend on order.

    >>> [(s.start_ms, s.end_ms) for s in smooth_syllables(
    ...     [Syllable("a", 0, 1000), Syllable("b", 1200, 2000)], 200)]
    [(0, 1100), (1100, 2000)]
    """
    out = list(track)
    if threshold_ms <= 0 or len(out) < 2:
        return out
    starts = [s.start_ms for s in out]
    ends = [s.end_ms for s in out]
    for i, (left, right) in enumerate(zip(track, track[1:])):
        gap = right.start_ms - left.end_ms
        if gap == 0 or gap > threshold_ms:
            continue
        boundary = (left.end_ms + right.start_ms) // 2
        boundary = min(max(boundary, left.start_ms), right.end_ms)
        ends[i] = boundary
        starts[i + 1] = boundary
    for i, s in enumerate(out):
        # two adjacent boundaries can cross on very short syllables
        start = starts[i]
        end = max(start, ends[i])
        if (start, end) != (s.start_ms, s.end_ms):
            out[i] = s.with_timing(start, end)
    return out


def _smooth_line(line: LyricLine, threshold_ms: int) -> LyricLine:
    if len(line.syllables) < 2:
        return line
    main = smooth_syllables(line.main_syllables, threshold_ms)
    background = smooth_syllables(line.background_syllables, threshold_ms)
    lo = min(s.start_ms for s in main + background)
    hi = max(s.end_ms for s in main + background)
    if (lo, hi) != (line.start_ms, line.end_ms):
        # line bounds stay put: the outer edges are never moved
        return line
    return line.with_syllables(main + background)


def smooth_document(doc: LyricDocument, config: PipelineConfig) -> LyricDocument:
    threshold = config.smoothing_threshold_ms
    if threshold <= 0:
        return doc
    lines = [_smooth_line(line, threshold) for line in doc.lines]
    changed = sum(1 for a, b in zip(doc.lines, lines) if a is not b)
    logger.debug("smoothing (%d ms): %d/%d lines adjusted", threshold, changed, len(lines))
    return doc.with_lines(lines)
