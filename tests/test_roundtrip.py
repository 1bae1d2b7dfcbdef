from __future__ import annotations

import random
import string

import pytest

from lyric_engine.converter import generate_text, parse
from lyric_engine.errors import Unrepresentable
from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument, LyricLine, Syllable
from lyric_engine.options import GenerateConfig

SYLLABLE_FORMATS = [
    FormatKind.QRC,
    FormatKind.KRC,
    FormatKind.YRC,
    FormatKind.LYS,
    FormatKind.ENHANCED_LRC,
    FormatKind.SPL,
    FormatKind.TTML,
    FormatKind.APPLE_MUSIC_JSON,
    FormatKind.ASS,
    FormatKind.LQE,
]
SEEDS = range(8)


def random_doc(seed: int, alphabet: str = string.ascii_letters) -> LyricDocument:
    """Ordered syllable-timed lines; times are whole centiseconds so every format can hold them."""
    rng = random.Random(seed)
    lines = []
    t = rng.randrange(0, 500, 10)
    for _ in range(rng.randint(1, 6)):
        syllables = []
        for _ in range(rng.randint(1, 4)):
            t += rng.choice((0, 0, 10, 200))
            duration = rng.randrange(10, 1000, 10)
            text = "".join(rng.choice(alphabet) for _ in range(rng.randint(1, 5)))
            syllables.append(Syllable(text, t, t + duration))
            t += duration
        lines.append(LyricLine.from_syllables(syllables))
        t += rng.randrange(0, 2000, 10)
    return LyricDocument.build(lines)


CJK = "愛你心歌夢風"


def rich_doc(seed: int, voices: tuple[str, ...]) -> LyricDocument:
    """A random document with CJK text, a custom metadata key and named, mixed-case voices."""
    doc = random_doc(seed, string.ascii_letters + CJK)
    metadata = {"title": ["歌"], "mood": ["calm"]}
    lines = list(doc.lines)
    if voices:
        metadata[f"agent:{voices[0]}"] = [f"{voices[0]} Smith"]
        lines = [line.with_agent(voices[i % len(voices)]) for i, line in enumerate(lines)]
    return LyricDocument.build(lines, metadata=metadata)


def track(line: LyricLine) -> list[tuple[str, int, int]]:
    # line-timed lines count as one syllable (SPL writes single words that way)
    if not line.syllables:
        return [(line.text, line.start_ms, line.end_ms)]
    return [(s.text, s.start_ms, s.end_ms) for s in line.syllables]


@pytest.mark.parametrize("kind", SYLLABLE_FORMATS, ids=lambda k: k.value)
def test_syllable_formats_round_trip(kind):
    config = GenerateConfig()
    for seed in SEEDS:
        doc = random_doc(seed)
        text = generate_text(kind, doc, config)
        back = parse(kind, text)
        assert [track(l) for l in back.lines] == [track(l) for l in doc.lines], (seed, text)
        assert generate_text(kind, back, config) == text


@pytest.mark.parametrize("voices", [(), ("Alice", "bob")], ids=["solo", "duet"])
@pytest.mark.parametrize("kind", list(FormatKind), ids=lambda k: k.value)
def test_rich_documents_round_trip_or_refuse(kind, voices):
    """Text, voices and metadata come back intact, or strict generation refuses the document."""
    for seed in SEEDS:
        doc = rich_doc(seed, voices)
        try:
            text = generate_text(kind, doc)
        except Unrepresentable:
            parse(kind, generate_text(kind, doc, GenerateConfig(allow_lossy=True)))
            continue
        back = parse(kind, text)
        assert [l.raw_text for l in back.lines] == [l.raw_text for l in doc.lines], (seed, text)
        assert [l.agent_id for l in back.lines] == [l.agent_id for l in doc.lines], (seed, text)
        for key, values in doc.metadata.items():
            assert back.metadata.get(key) == values, (seed, key, text)


def test_lrc_keeps_line_starts_and_text():
    for seed in SEEDS:
        doc = random_doc(seed)
        text = generate_text(FormatKind.LRC, doc)
        back = parse(FormatKind.LRC, text)
        assert [(l.start_ms, l.text) for l in back.lines] == [(l.start_ms, l.raw_text) for l in doc.lines]
        assert generate_text(FormatKind.LRC, back) == text


def test_lyl_keeps_line_bounds_and_text():
    for seed in SEEDS:
        doc = random_doc(seed)
        text = generate_text(FormatKind.LYRICIFY_LINES, doc)
        back = parse(FormatKind.LYRICIFY_LINES, text)
        assert [(l.start_ms, l.end_ms, l.text) for l in back.lines] == [
            (l.start_ms, l.end_ms, l.raw_text) for l in doc.lines
        ]


@pytest.mark.parametrize(
    "kind",
    [FormatKind.QRC, FormatKind.LYS, FormatKind.TTML, FormatKind.ASS],
    ids=lambda k: k.value,
)
def test_background_vocals_survive(kind):
    doc = LyricDocument.build(
        [LyricLine.from_syllables([Syllable("a", 1000, 2000), Syllable("ooh", 1200, 1700, is_background=True)])]
    )
    (line,) = parse(kind, generate_text(kind, doc)).lines
    assert [(s.text, s.start_ms, s.end_ms) for s in line.background_syllables] == [("ooh", 1200, 1700)]
    assert line.main_text == "a"


def test_duet_survives_ttml_and_lys():
    doc = LyricDocument.build(
        [
            LyricLine.from_syllables([Syllable("a", 0, 1000)], agent_id="v1"),
            LyricLine.from_syllables([Syllable("b", 500, 1500)], agent_id="v2"),
        ]
    )
    for kind in (FormatKind.TTML, FormatKind.LYS):
        back = parse(kind, generate_text(kind, doc))
        assert [(l.agent_id, l.start_ms) for l in back.lines] == [("v1", 0), ("v2", 500)]


class TestRepair:
    """Invalid timing in the input comes out as a valid document plus warnings."""

    def test_lines_out_of_order(self):
        doc = parse(FormatKind.QRC, "[2000,500]b(2000,500)\n[0,500]a(0,500)\n")
        assert [l.raw_text for l in doc.lines] == ["a", "b"]

    def test_same_voice_overlap_is_clipped(self):
        doc = parse(FormatKind.LYS, "[4]a(0,1000)\n[4]b(500,1000)\n")
        assert [(l.start_ms, l.end_ms) for l in doc.lines] == [(0, 500), (500, 1500)]
        assert any("clipped" in w for w in doc.warnings)

    def test_unknown_voices_may_overlap(self):
        doc = parse(FormatKind.QRC, "[0,1000]a(0,1000)\n[500,1000]b(500,1000)\n")
        assert [(l.start_ms, l.end_ms) for l in doc.lines] == [(0, 1000), (500, 1500)]
        assert doc.warnings == ()
