from __future__ import annotations

import logging
from bisect import bisect_left
from dataclasses import replace

from .model import LyricDocument, LyricLine
from .processors.metadata import merge_metadata

logger = logging.getLogger(__name__)

TRANSLATION = "translation"
ROMANIZATION = "romanization"

DEFAULT_TOLERANCE_MS = 100


def _nearest(starts: list[int], t_ms: int) -> int | None:
    if not starts:
        return None
    i = bisect_left(starts, t_ms)
    candidates = [j for j in (i - 1, i) if 0 <= j < len(starts)]
    return min(candidates, key=lambda j: (abs(starts[j] - t_ms), j))


def merge_auxiliary(
    main: LyricDocument,
    aux: LyricDocument,
    kind: str = TRANSLATION,
    language: str = "und",
    tolerance_ms: int = DEFAULT_TOLERANCE_MS,
) -> LyricDocument:
    """
    Attach each line of `aux` to the `main` line starting nearest to it, as a
    translation or romanization in `language`.

    Lines further than `tolerance_ms` from every main line, or landing on a
    main line that already holds that language, are reported as warnings.
    """
    if kind not in (TRANSLATION, ROMANIZATION):
        raise ValueError(f"kind must be {TRANSLATION!r} or {ROMANIZATION!r}, got {kind!r}")

    lines: list[LyricLine] = list(main.lines)
    starts = [line.start_ms for line in lines]
    warnings: list[str] = list(aux.warnings)
    matched = 0

    for aux_line in aux.lines:
        text = aux_line.raw_text.strip()
        if not text:
            continue
        j = _nearest(starts, aux_line.start_ms)
        if j is None or abs(starts[j] - aux_line.start_ms) > tolerance_ms:
            warnings.append(f"No line near {aux_line.start_ms}ms for {kind} {text[:40]!r}")
            continue
        target = lines[j]
        existing = target.translations if kind == TRANSLATION else target.romanization
        if language in existing:
            warnings.append(f"Line at {target.start_ms}ms already has a {language} {kind}; {text[:40]!r} ignored")
            continue
        if kind == TRANSLATION:
            lines[j] = target.with_translation(language, text)
        else:
            lines[j] = target.with_romanization(language, text)
        matched += 1

    logger.debug("merged %d/%d %s lines (%s)", matched, len(aux.lines), kind, language)
    return (
        main.with_lines(lines)
        .with_metadata(merge_metadata(main.metadata, aux.metadata))
        .add_warnings(*warnings)
    )


def auxiliary_document(doc: LyricDocument, kind: str = TRANSLATION, language: str = "und") -> LyricDocument:
    """The `language` translation (or romanization) of `doc` as a line-timed document of its own."""
    lines = []
    for line in doc.lines:
        text = (line.translations if kind == TRANSLATION else line.romanization).get(language)
        if text:
            lines.append(LyricLine(start_ms=line.start_ms, end_ms=line.end_ms, text=text))
    return LyricDocument.build(lines)


def strip_auxiliary(doc: LyricDocument) -> LyricDocument:
    return doc.with_lines(replace(line, translations={}, romanization={}) for line in doc.lines)
