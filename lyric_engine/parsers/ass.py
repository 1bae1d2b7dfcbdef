from __future__ import annotations

import re
from dataclasses import dataclass

from lyric_engine.model import LyricDocument, LyricLine
from lyric_engine.options import ParseOptions
from lyric_engine.util.numbers import NumberError
from lyric_engine.util.text import normalize_space, split_lines
from lyric_engine.util.timing import parse_ass_time

from ._common import Collector, attach_background, strip_background_parens, syllables_from_spans

DEFAULT_EVENT_FIELDS = ["layer", "start", "end", "style", "name", "marginl", "marginr", "marginv", "effect", "text"]

MAIN_STYLES = {"default", "orig", "main"}
TRANSLATION_STYLES = {"ts", "trans", "translation"}
ROMANIZATION_STYLES = {"roma", "romaji", "romanization"}
BACKGROUND_STYLES = {"bg-main", "bg"}
BACKGROUND_AUX_STYLES = {"bg-ts", "bg-roma"}
META_STYLE = "meta"

_SECTION_RE = re.compile(r"^\[([^\]]+)\]$")
_ROW_RE = re.compile(r"^(Dialogue|Comment|Format)\s*:\s*(.*)$", re.IGNORECASE)
# escaped characters, override blocks, plain runs
_TOKEN_RE = re.compile(r"\\([{}N\\])|(\{[^}]*\})|([^\\{]+|.)", re.DOTALL)
_KARAOKE_RE = re.compile(r"\\[kK][fo]?(\d+)")


def unescape_text(text: str) -> str:
    r"""Drop override blocks and undo `\{ \} \\ \N`."""
    out = []
    for m in _TOKEN_RE.finditer(text):
        esc, block, plain = m.groups()
        if esc is not None:
            out.append("\n" if esc == "N" else esc)
        elif plain is not None:
            out.append(plain)
    return "".join(out)


def karaoke_spans(text: str, start_ms: int) -> list[tuple[str, int, int]] | None:
    r"""
    `{\kNN}syl{\kNN}syl` -> [(text, start, end)]; durations are centiseconds
    counted from the row start. A tag with no text after it is a gap.
    None when the row has no karaoke tags.
    """
    spans: list[list] = []
    cursor = start_ms
    current: list | None = None
    seen_tag = False
    for m in _TOKEN_RE.finditer(text):
        esc, block, plain = m.groups()
        if block is not None:
            durations = _KARAOKE_RE.findall(block)
            for cs in durations:
                seen_tag = True
                current = ["", cursor, cursor + int(cs) * 10]
                spans.append(current)
                cursor = current[2]
            continue
        piece = ("\n" if esc == "N" else esc) if esc is not None else plain
        if current is None:
            current = [piece, cursor, cursor]
            spans.append(current)
        else:
            current[0] += piece
    if not seen_tag:
        return None
    return [(t, s, e) for t, s, e in spans if t]


@dataclass(slots=True)
class _Row:
    kind: str
    start: int
    end: int
    style: str
    actor: str
    text: str
    line_no: int


def parse_ass(text: str, options: ParseOptions | None = None) -> LyricDocument:
    """
    ASS subtitles as written by lyric tools.

    Styles select the role of a row: `Default`/`orig` main, `ts` translation,
    `roma` romanization, `bg-main` background vocals, `meta` Comment rows
    holding `key: value`. The actor field carries the agent, `x-bg`, or
    `x-lang:<tag>` on translation rows.
    """
    options = options or ParseOptions()
    c = Collector("ASS")
    section = ""
    seen_sections: set[str] = set()
    fields = list(DEFAULT_EVENT_FIELDS)
    rows: list[_Row] = []
    event_rows = 0

    for line_no, raw in enumerate(split_lines(text), start=1):
        line = raw.strip()
        if not line or line.startswith(";"):
            continue
        sec = _SECTION_RE.match(line)
        if sec:
            section = sec.group(1).strip().lower()
            seen_sections.add(section)
            continue
        if section != "events":
            continue
        m = _ROW_RE.match(line)
        if not m:
            continue
        kind, payload = m.group(1).lower(), m.group(2)
        if kind == "format":
            fields = [f.strip().lower() for f in payload.split(",")]
            continue
        event_rows += 1
        values = payload.split(",", len(fields) - 1)
        if len(values) < len(fields):
            c.warn(line_no, f"{kind} row with {len(values)} of {len(fields)} fields ignored")
            continue
        row = dict(zip(fields, values))
        try:
            start = parse_ass_time(row.get("start", ""))
            end = parse_ass_time(row.get("end", ""))
        except NumberError as e:
            c.warn(line_no, str(e))
            continue
        # the text field keeps its spacing, everything before it is trimmed
        rows.append(
            _Row(kind, start, end, row.get("style", "").strip(), row.get("name", "").strip(),
                 row.get("text", "").rstrip("\r\n"), line_no)
        )

    if "events" not in seen_sections and "script info" not in seen_sections:
        raise c.wrong_format("no [Script Info] or [Events] section")
    if not event_rows:
        raise c.wrong_format("no Dialogue rows")

    lines: list[LyricLine] = []
    dialogue_rows = 0
    for row in rows:
        style = row.style.lower()
        if row.kind == "comment":
            if style == META_STYLE:
                entry = unescape_text(row.text)
                # "agent:v1: Name" keeps the colon inside the key
                key, sep, value = entry.partition(": ") if ": " in entry else entry.partition(":")
                if sep:
                    c.add_meta(key, value)
                else:
                    c.warn(row.line_no, f"meta row without 'key: value' ignored: {row.text[:40]!r}")
            continue
        dialogue_rows += 1
        actor_tokens = row.actor.split()
        actor = actor_tokens[0] if actor_tokens else ""

        if style in TRANSLATION_STYLES or style in ROMANIZATION_STYLES:
            _attach_aux(c, lines, row, actor, style in TRANSLATION_STYLES, options)
            continue
        if style in BACKGROUND_AUX_STYLES:
            c.warn(row.line_no, f"{row.style} row ignored: background translations are not kept")
            continue

        spans = karaoke_spans(row.text, row.start)
        if style in BACKGROUND_STYLES or actor == "x-bg":
            if spans is None:
                body = normalize_space(unescape_text(row.text))
                spans = [(body, row.start, row.end)] if body else []
            inner = strip_background_parens(spans) or spans
            if attach_background(lines, inner):
                continue
        elif style not in MAIN_STYLES:
            c.warn(row.line_no, f"unknown style {row.style!r} read as a main line")

        agent = actor if actor and not actor.startswith("x-") else None
        if spans is None:
            body = normalize_space(unescape_text(row.text))
            if body:
                lines.append(LyricLine(start_ms=row.start, end_ms=max(row.start, row.end), text=body, agent_id=agent))
            continue
        track = syllables_from_spans(spans, warn=lambda msg, n=row.line_no: c.warn(n, msg))
        if track:
            lines.append(LyricLine.from_syllables(track, agent_id=agent))

    if not dialogue_rows and not c.metadata:
        raise c.corrupt("[Events] holds no readable Dialogue rows")
    return c.document(lines)


def _attach_aux(
    c: Collector, lines: list[LyricLine], row: _Row, actor: str, is_translation: bool, options: ParseOptions
) -> None:
    body = normalize_space(unescape_text(row.text))
    if not body:
        return
    if not lines:
        c.warn(row.line_no, f"{row.style} row before any main line ignored")
        return
    lang = actor[len("x-lang:"):] if actor.startswith("x-lang:") else ""
    # rows follow their main line; prefer the latest one starting at the same time
    target = len(lines) - 1
    for i in range(len(lines) - 1, -1, -1):
        if lines[i].start_ms == row.start:
            target = i
            break
    line = lines[target]
    if is_translation:
        lines[target] = line.with_translation(lang or options.translation_lang(), body)
    else:
        lines[target] = line.with_romanization(lang or options.romanization_scheme, body)
