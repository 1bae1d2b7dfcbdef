from __future__ import annotations

from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument, LyricLine, Syllable
from lyric_engine.options import GenerateConfig
from lyric_engine.util.timing import fmt_ass_time

from ._common import Emitter, rounded

SCRIPT_INFO = [
    "[Script Info]",
    "ScriptType: v4.00+",
    "PlayResX: 1920",
    "PlayResY: 1080",
]

STYLE_FORMAT = (
    "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, "
    "Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, "
    "Alignment, MarginL, MarginR, MarginV, Encoding"
)
# name, size, primary colour, outline, alignment, vertical margin
_STYLES = [
    ("Default", 90, "&H00FFFFFF", "3.5", 2, 10),
    ("ts", 55, "&H00D3D3D3", "2", 2, 50),
    ("roma", 55, "&H00D3D3D3", "2", 2, 50),
    ("bg-main", 75, "&H00E5E5E5", "3", 8, 10),
    ("bg-ts", 45, "&H00A0A0A0", "1.5", 8, 55),
    ("bg-roma", 45, "&H00A0A0A0", "1.5", 8, 55),
    ("meta", 40, "&H00C0C0C0", "1", 5, 10),
]
EVENT_FORMAT = "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text"


def escape_text(text: str) -> str:
    return text.replace("\\", "\\\\").replace("{", "\\{").replace("}", "\\}")


def _style_rows() -> list[str]:
    return [
        f"Style: {name},Arial,{size},{colour},&H000000FF,&H00000000,&H99000000,"
        f"0,0,0,0,100,100,0,0,1,{outline},1,{align},10,10,{margin},1"
        for name, size, colour, outline, align, margin in _STYLES
    ]


def _section(block: str | None) -> list[str]:
    if not block or not block.strip():
        return []
    return [line.rstrip() for line in block.strip().splitlines()]


def _row(kind: str, start: int, end: int, style: str, actor: str, text: str) -> str:
    return f"{kind}: 0,{fmt_ass_time(start)},{fmt_ass_time(end)},{style},{actor},0,0,0,,{text}"


def karaoke(track: list[Syllable], e: Emitter) -> tuple[int, int, str]:
    r"""`{\kNN}syl...` in centiseconds; gaps get a tag of their own."""
    words = rounded(track, e)
    start = cursor = words[0][1]
    parts = []
    for text, s, t in words:
        if s > cursor:
            parts.append(f"{{\\k{(s - cursor) // 10}}}")
        parts.append(f"{{\\k{(t - s) // 10}}}{escape_text(text)}")
        cursor = t
    return start, cursor, "".join(parts)


def _line_rows(line: LyricLine, e: Emitter) -> list[str]:
    rows = []
    actor = line.agent_id or ""
    main = line.main_syllables
    if main:
        start, end, text = karaoke(list(main), e)
    else:
        start, end = e.span(line.start_ms, line.end_ms)
        text = escape_text(e.text(line.text or "")) if not line.syllables else ""
    if text:
        rows.append(_row("Dialogue", start, end, "Default", actor, text))
    if line.background_syllables:
        bg_start, bg_end, bg_text = karaoke(list(line.background_syllables), e)
        rows.append(_row("Dialogue", bg_start, bg_end, "bg-main", "x-bg", bg_text))
        if not text:
            start, end = bg_start, bg_end
    if e.config.inline_translation:
        for lang, value in line.translations.items():
            rows.append(_row("Dialogue", start, end, "ts", f"x-lang:{lang}", escape_text(e.text(value))))
        for scheme, value in line.romanization.items():
            rows.append(_row("Dialogue", start, end, "roma", f"x-lang:{scheme}", escape_text(e.text(value))))
    return rows


def generate_ass(doc: LyricDocument, config: GenerateConfig) -> str:
    """
    Karaoke ASS: one `Default` row per line with `{\\k}` tags, a `bg-main`
    row for background vocals, `ts`/`roma` rows for translation and
    romanization, and metadata as `meta` Comment rows.
    """
    e = Emitter(FormatKind.ASS, config)
    script_info = _section(config.ass_script_info) or SCRIPT_INFO
    styles = _section(config.ass_styles) or ["[V4+ Styles]", STYLE_FORMAT, *_style_rows()]
    out = [*script_info, "", *styles, "", "[Events]", EVENT_FORMAT]
    for key, values in doc.metadata.items():
        for value in values:
            out.append(_row("Comment", 0, 0, "meta", "", escape_text(e.text(f"{key}: {value}"))))
    for line in doc.lines:
        out.extend(_line_rows(line, e))
    return e.join(out)
