from __future__ import annotations

import re
from itertools import groupby

from lyric_engine.model import LyricDocument, LyricLine
from lyric_engine.options import ParseOptions, SameTimestampStrategy
from lyric_engine.util.numbers import NumberError
from lyric_engine.util.text import count_scripts, is_latin_only, normalize_space, split_lines
from lyric_engine.util.timing import clock_to_ms

from ._common import Collector

_LINE_RE = re.compile(r"^((?:\[\d{2,}:\d{2}[.:]\d{2,3}\])+)(.*)$")  # one or more leading stamps
_TS_RE = re.compile(r"\[(\d{2,}):(\d{2})[.:](\d{2,3})\]")
_WORD_TAG_RE = re.compile(r"<\d{2,}:\d{2}[.:]\d{2,3}>")  # enhanced LRC word stamps, dropped here

DEFAULT_LAST_LINE_MS = 10_000


def parse_lrc(text: str, options: ParseOptions | None = None) -> LyricDocument:
    """
    Supported:
    - [mm:ss.xx], [mm:ss.xxx], [mm:ss:xx]
    - multiple timestamps per line (the line repeats)
    - [key:value] tags ([ti:], [ar:], [offset:], ...)
    - several lines sharing a timestamp: main line plus translation/romanization,
      resolved by `options.lrc_same_timestamp`
    - an empty timed line only marks where the previous line ends

    A line ends where the next timestamp starts; the last one lasts 10 s.
    """
    options = options or ParseOptions()
    c = Collector("LRC")
    entries: list[tuple[int, int, str]] = []  # (t_ms, file order, text)
    timed_lines = 0

    for line_no, raw in enumerate(split_lines(text), start=1):
        line = raw.strip()
        if not line:
            continue
        m = _LINE_RE.match(line)
        if m:
            timed_lines += 1
            payload = normalize_space(_WORD_TAG_RE.sub("", m.group(2)))
            for ts in _TS_RE.finditer(m.group(1)):
                try:
                    t_ms = clock_to_ms(*ts.groups())
                except NumberError as e:
                    c.warn(line_no, f"invalid timestamp {ts.group(0)}: {e}")
                    continue
                entries.append((t_ms, len(entries), payload))
            continue
        if c.meta_tag(line):
            continue
        c.warn(line_no, f"untimed line ignored: {line[:40]!r}")

    if not entries:
        if timed_lines:
            raise c.corrupt("no valid timestamp in any timed line")
        if not c.metadata:
            raise c.wrong_format("no [mm:ss.xx] timestamps found")
        return c.document([])

    entries.sort()
    groups = [
        (t_ms, [e[2] for e in group if e[2]])
        for t_ms, group in groupby(entries, key=lambda e: e[0])
    ]

    lines: list[LyricLine] = []
    for i, (t_ms, texts) in enumerate(groups):
        if not texts:
            continue  # end marker
        end_ms = groups[i + 1][0] if i + 1 < len(groups) else t_ms + DEFAULT_LAST_LINE_MS
        lines.extend(_lines_for_group(t_ms, end_ms, texts, options, c))

    return c.document(lines)


def _lines_for_group(
    start_ms: int, end_ms: int, texts: list[str], options: ParseOptions, c: Collector
) -> list[LyricLine]:
    strategy = options.lrc_same_timestamp
    if strategy is SameTimestampStrategy.ALL_ARE_MAIN or len(texts) == 1:
        return [LyricLine(start_ms=start_ms, end_ms=end_ms, text=t) for t in texts]

    if strategy is SameTimestampStrategy.HEURISTIC:
        main, translation, roman, extra = _heuristic_roles(texts)
    else:
        main, translation, roman, extra = texts[0], texts[1], texts[2] if len(texts) > 2 else None, texts[3:]

    for dropped in extra:
        c.warn(None, f"extra line at {start_ms}ms ignored: {dropped[:40]!r}")
    return [
        LyricLine(
            start_ms=start_ms,
            end_ms=end_ms,
            text=main,
            translations={options.translation_lang(): translation} if translation else {},
            romanization={options.romanization_scheme: roman} if roman else {},
        )
    ]


def _heuristic_roles(texts: list[str]) -> tuple[str, str | None, str | None, list[str]]:
    """
    Pick (main, translation, romanization, leftovers) from lines sharing a stamp.

    Latin-only lines are romanization when some other line is not Latin;
    the main line is the first one with kana or hangul, else the first
    remaining line.
    """
    if all(is_latin_only(t) for t in texts):
        return texts[0], texts[1], texts[2] if len(texts) > 2 else None, texts[3:]

    romans = [t for t in texts if is_latin_only(t)]
    others = [t for t in texts if not is_latin_only(t)]

    def has_native_script(t: str) -> bool:
        scripts = count_scripts(t)
        return bool(scripts.get("kana") or scripts.get("hangul"))

    main = next((t for t in others if has_native_script(t)), others[0])
    rest = list(others)
    rest.remove(main)
    translation = rest[0] if rest else None
    roman = romans[0] if romans else None
    leftovers = rest[1:] + romans[1:]
    return main, translation, roman, leftovers
