from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from lyric_engine.model import LyricDocument, LyricLine, Syllable
from lyric_engine.options import PipelineConfig
from lyric_engine.parsers._common import finalize_lines, strip_background_parens

logger = logging.getLogger(__name__)

# "(Name): ", "（名前）：", "男：", "A: "
DEFAULT_CUE_PATTERN = r"^\s*(?:\((.+?)\)|（(.+?)）|([^\s:()（）]{1,16}))\s*[:：]\s*"


@dataclass(frozen=True, slots=True)
class AgentRules:
    cue_pattern: str = DEFAULT_CUE_PATTERN
    background_open: tuple[str, ...] = ("(", "（")
    background_close: tuple[str, ...] = (")", "）")
    # voices that may sing at the same time before overlap detection gives up
    max_voices: int = 2
    mark_background: bool = True


class _Ids:
    """Hands out `v1`, `v2`, ... skipping ids already used by the document."""

    def __init__(self, taken: set[str]) -> None:
        self.taken = set(taken)
        self.by_name: dict[str, str] = {}
        self._n = 0

    def fresh(self) -> str:
        while True:
            self._n += 1
            candidate = f"v{self._n}"
            if candidate not in self.taken:
                self.taken.add(candidate)
                return candidate

    def for_name(self, name: str) -> str:
        if name not in self.by_name:
            self.by_name[name] = name if name in self.taken else self.fresh()
        return self.by_name[name]


def recognize_agents(doc: LyricDocument, config: PipelineConfig) -> LyricDocument:
    """
    Assign voices to lines that have none.

    1. Role cues: a cue-only line (`男：`) sets the current voice and is
       removed; `A: text` assigns A and strips the cue; later unassigned lines
       inherit the current voice unless that would overlap its previous line.
    2. Overlap: clusters of still-unassigned lines that overlap each other are
       spread over fresh voices. A cluster needing more than `max_voices` is
       left alone with a warning.
    3. Parenthesised syllable runs inside a line become background syllables.

    Lines that already carry an agent are never changed.
    """
    rules = config.agent_rules or AgentRules()
    cue_re = re.compile(rules.cue_pattern)
    ids = _Ids({line.agent_id for line in doc.lines if line.agent_id is not None} | set(doc.agents))
    metadata = {k: tuple(v) for k, v in doc.metadata.items()}
    warnings: list[str] = []

    lines: list[LyricLine] = []
    current: str | None = None
    last_end: dict[str, int] = {}
    for line in doc.lines:
        if line.agent_id is not None:
            last_end[line.agent_id] = max(last_end.get(line.agent_id, 0), line.end_ms)
            lines.append(line)
            continue
        m = cue_re.match(line.main_text)
        if m:
            name = next(g for g in m.groups() if g is not None).strip()
            agent = ids.for_name(name)
            key = f"agent:{agent}"
            if name not in metadata.get(key, ()):
                metadata[key] = (*metadata.get(key, ()), name)
            current = agent
            line = _strip_prefix(line, m.end())
            if line is None:
                continue  # cue-only line
            line = line.with_agent(agent)
        elif current is not None and line.start_ms >= last_end.get(current, 0):
            line = line.with_agent(current)
        if line.agent_id is not None:
            last_end[line.agent_id] = max(last_end.get(line.agent_id, 0), line.end_ms)
        lines.append(line)

    lines = _assign_overlaps(lines, ids, rules.max_voices, warnings)
    if rules.mark_background:
        lines = [_mark_background(line, rules) for line in lines]
    lines = finalize_lines(lines, warnings)

    assigned = sum(1 for line in lines if line.agent_id is not None)
    logger.debug("agents: %d/%d lines assigned, %d voices", assigned, len(lines), len(ids.taken))
    return doc.with_lines(lines).with_metadata(metadata).add_warnings(*warnings)


def _strip_prefix(line: LyricLine, n: int) -> LyricLine | None:
    """Remove the first `n` characters of the main text; None when nothing is left."""
    if not line.syllables:
        rest = (line.text or "")[n:].strip()
        return line.with_text(rest) if rest else None

    kept: list[Syllable] = []
    remaining = n
    for s in line.main_syllables:
        if remaining >= len(s.text):
            remaining -= len(s.text)
            continue
        text = s.text[remaining:]
        remaining = 0
        if not kept:
            text = text.lstrip()
        if text:
            kept.append(s.with_text(text))
    if not "".join(s.text for s in kept).strip():
        return None
    return line.with_syllables(kept + list(line.background_syllables))


def _assign_overlaps(lines: list[LyricLine], ids: _Ids, max_voices: int, warnings: list[str]) -> list[LyricLine]:
    free = [i for i, line in enumerate(lines) if line.agent_id is None]
    clusters: list[list[int]] = []
    cluster_end = -1
    for i in free:
        line = lines[i]
        if clusters and line.start_ms < cluster_end:
            clusters[-1].append(i)
            cluster_end = max(cluster_end, line.end_ms)
        else:
            clusters.append([i])
            cluster_end = line.end_ms

    out = list(lines)
    voices: list[str] = []
    for cluster in clusters:
        if len(cluster) < 2:
            continue
        slots: list[int] = []  # end time per voice
        choice: list[int] = []
        for i in cluster:
            slot = next((k for k, end in enumerate(slots) if end <= lines[i].start_ms), None)
            if slot is None:
                slots.append(0)
                slot = len(slots) - 1
            slots[slot] = lines[i].end_ms
            choice.append(slot)
        if len(slots) > max_voices:
            warnings.append(
                f"Lines from {lines[cluster[0]].start_ms}ms overlap {len(slots)} deep; "
                f"voices left unassigned (at most {max_voices})"
            )
            continue
        while len(voices) < len(slots):
            voices.append(ids.fresh())
        for i, slot in zip(cluster, choice):
            out[i] = lines[i].with_agent(voices[slot])
    return out


def _mark_background(line: LyricLine, rules: AgentRules) -> LyricLine:
    if line.background_syllables:
        return line
    main = list(line.main_syllables)
    opener = next((i for i, s in enumerate(main) if s.text.lstrip().startswith(rules.background_open)), None)
    if opener is None:
        return line
    closer = next(
        (i for i in range(opener, len(main)) if main[i].text.rstrip().endswith(rules.background_close)), None
    )
    if closer is None or (opener == 0 and closer == len(main) - 1):
        return line
    run = main[opener : closer + 1]
    inner = strip_background_parens([(s.text, s.start_ms, s.end_ms) for s in run])
    if not inner:
        return line
    background = [Syllable(text, start, end, is_background=True) for text, start, end in inner]
    return line.with_syllables(main[:opener] + main[closer + 1 :] + background)
