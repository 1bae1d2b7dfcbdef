from __future__ import annotations

import pytest

from lyric_engine.errors import Corrupt, UnsupportedFeature, WrongFormat
from lyric_engine.generators.lqe import generate_lqe
from lyric_engine.model import LyricDocument, LyricLine, Syllable
from lyric_engine.options import GenerateConfig
from lyric_engine.parsers.lqe import parse_lqe

SAMPLE = """[Lyricify Quick Export]
[version:1.0]
[ti:Song]

[lyrics: format@lys, language@ja]
[4]Hel(1000,500)lo(1500,500)
[3]plain(3000,1000)

[translation: format@lrc, language@en]
[00:01.00]Hi
[00:03.00]Plain

[pronunciation: format@lrc, language@ja-Latn]
[00:01.05]haro
"""


def test_sections_are_merged_by_start_time():
    doc = parse_lqe(SAMPLE)
    first, second = doc.lines
    assert first.raw_text == "Hello"
    assert first.agent_id == "v1"
    assert first.translations == {"en": "Hi"}
    assert first.romanization == {"ja-Latn": "haro"}
    assert second.translations == {"en": "Plain"}
    assert doc.first("title") == "Song"
    assert doc.first("language") == "ja"


def test_generate_then_read_back():
    doc = LyricDocument.build(
        [
            LyricLine.from_syllables([Syllable("Hel", 1000, 1500), Syllable("lo", 1500, 2000)], translations={"en": "Hi"}),
            LyricLine(start_ms=3000, end_ms=4000, text="plain"),
        ],
        metadata={"title": ["T"]},
    )
    text = generate_lqe(doc, GenerateConfig())
    assert text.splitlines()[:3] == ["[Lyricify Quick Export]", "[version:1.0]", "[ti:T]"]
    assert "[lyrics: format@lys, language@und]" in text
    assert "[translation: format@lrc, language@en]\n[00:01.000]Hi" in text

    back = parse_lqe(text)
    assert [l.raw_text for l in back.lines] == ["Hello", "plain"]
    assert back.lines[0].translations == {"en": "Hi"}


def test_missing_header():
    with pytest.raises(WrongFormat):
        parse_lqe("[lyrics: format@lys]\n[3]a(0,100)\n")


def test_missing_lyrics_section():
    with pytest.raises(Corrupt):
        parse_lqe("[Lyricify Quick Export]\n[translation: format@lrc]\n[00:01.00]x\n")


def test_unreadable_lyrics_section_is_corrupt():
    with pytest.raises(Corrupt):
        parse_lqe("[Lyricify Quick Export]\n[lyrics: format@lys]\nnot lys\n")


def test_unsupported_section_format():
    with pytest.raises(UnsupportedFeature):
        parse_lqe("[Lyricify Quick Export]\n[lyrics: format@ttml]\n<tt/>\n")


def test_bad_translation_section_is_a_warning():
    doc = parse_lqe("[Lyricify Quick Export]\n[lyrics: format@lys]\n[3]a(0,100)\n[translation: format@lrc]\nnothing\n")
    assert len(doc.lines) == 1
    assert any("[translation] section ignored" in w for w in doc.warnings)
