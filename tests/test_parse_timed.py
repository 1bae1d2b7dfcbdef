from __future__ import annotations

import base64
import json

import pytest

from lyric_engine.errors import WrongFormat
from lyric_engine.parsers.krc import parse_krc
from lyric_engine.parsers.lyl import parse_lyl
from lyric_engine.parsers.lys import parse_lys
from lyric_engine.parsers.qrc import parse_qrc
from lyric_engine.parsers.spl import parse_spl
from lyric_engine.parsers.yrc import parse_yrc


def spans(syllables):
    return [(s.text, s.start_ms, s.end_ms) for s in syllables]


class TestQrc:
    def test_words_and_zero_length_separator(self):
        doc = parse_qrc("[ti:T]\n[1000,2000]Hel(1000,500)lo(1500,500) (0,0)world(2000,1000)\n")
        (line,) = doc.lines
        assert spans(line.syllables) == [
            ("Hel", 1000, 1500),
            ("lo", 1500, 2000),
            (" ", 2000, 2000),
            ("world", 2000, 3000),
        ]
        assert doc.first("title") == "T"

    def test_parenthesised_line_is_background_of_previous(self):
        doc = parse_qrc("[1000,1000]a(1000,1000)\n[1200,500](ooh)(1200,500)\n")
        (line,) = doc.lines
        assert spans(line.main_syllables) == [("a", 1000, 2000)]
        assert spans(line.background_syllables) == [("ooh", 1200, 1700)]
        assert doc.has_background

    def test_background_without_previous_line_is_promoted(self):
        doc = parse_qrc("[0,500](ooh)(0,500)\n")
        assert doc.lines[0].main_text == "(ooh)"
        assert not doc.has_background

    def test_overlapping_words_are_repaired(self):
        doc = parse_qrc("[0,1000]a(0,600)b(500,500)\n")
        assert spans(doc.lines[0].syllables) == [("a", 0, 600), ("b", 600, 1000)]
        assert any("overlaps" in w for w in doc.warnings)

    def test_line_without_words_is_line_timed(self):
        doc = parse_qrc("[1000,2000]just text\n")
        assert doc.lines[0].text == "just text"
        assert doc.lines[0].end_ms == 3000

    def test_xml_wrapper(self):
        text = (
            '<?xml version="1.0" encoding="utf-8"?>\n<QrcInfos><LyricInfo LyricCount="1">'
            '<Lyric_1 LyricType="1" LyricContent="[ti:T]\n[0,500]a(0,500)\n"/></LyricInfo></QrcInfos>'
        )
        doc = parse_qrc(text)
        assert spans(doc.lines[0].syllables) == [("a", 0, 500)]

    def test_not_qrc(self):
        with pytest.raises(WrongFormat):
            parse_qrc("hello")


class TestKrc:
    def test_offsets_are_relative_to_the_line(self):
        doc = parse_krc("[ti:T]\n[1000,1500]<0,500,0>Hel<500,1000,0>lo\n")
        assert spans(doc.lines[0].syllables) == [("Hel", 1000, 1500), ("lo", 1500, 2500)]

    def test_language_block(self):
        payload = {
            "content": [
                {"language": 0, "type": 1, "lyricContent": [["你好"]]},
                {"language": 0, "type": 0, "lyricContent": [["ni hao"]]},
            ],
            "version": 1,
        }
        encoded = base64.b64encode(json.dumps(payload, ensure_ascii=False).encode("utf-8")).decode("ascii")
        doc = parse_krc(f"[language:{encoded}]\n[0,1000]<0,1000,0>hello\n")
        (line,) = doc.lines
        assert line.translations == {"zh-Hans": "你好"}
        assert line.romanization == {"ja-Latn": "ni hao"}

    def test_broken_language_block_warns(self):
        doc = parse_krc("[language:abc]\n[0,1000]<0,1000,0>hello\n")
        assert doc.lines[0].translations == {}
        assert doc.warnings


class TestYrc:
    def test_words_and_credit_lines(self):
        doc = parse_yrc(
            '{"t":0,"c":[{"tx":"作词: "},{"tx":"A"},{"tx":"/"},{"tx":"B"}]}\n'
            "[1000,1000](1000,400,0)Hi(1400,600,0) there\n"
        )
        assert doc.metadata["lyricist"] == ("A", "B")
        assert spans(doc.lines[0].syllables) == [("Hi", 1000, 1400), (" there", 1400, 2000)]

    def test_invalid_credit_line_is_a_warning(self):
        doc = parse_yrc("{not json\n[0,500](0,500,0)a\n")
        assert len(doc.lines) == 1
        assert any("credit line" in w for w in doc.warnings)


class TestLys:
    def test_properties_map_to_sides_and_background(self):
        doc = parse_lys("[4]Hi(1000,500)\n[5]Yo(2000,500)\n[7](ooh)(2100,300)\n[0]all(3000,500)\n")
        assert [l.agent_id for l in doc.lines] == ["v1", "v2", None]
        assert spans(doc.lines[1].background_syllables) == [("ooh", 2100, 2400)]
        assert doc.agents == frozenset({"v1", "v2"})

    def test_property_out_of_range_is_dropped(self):
        doc = parse_lys("[9]x(0,100)\n[3]y(100,100)\n")
        assert [l.main_text for l in doc.lines] == ["y"]
        assert doc.warnings

    def test_not_lys(self):
        with pytest.raises(WrongFormat):
            parse_lys("[00:01.00]lrc line")


class TestLyl:
    def test_lines(self):
        doc = parse_lyl("[type:LyricifyLines]\n[1000,2000]first\n[2000,3500]second\n")
        assert [(l.start_ms, l.end_ms, l.text) for l in doc.lines] == [(1000, 2000, "first"), (2000, 3500, "second")]

    def test_end_before_start_dropped(self):
        doc = parse_lyl("[type:LyricifyLines]\n[2000,1000]bad\n[3000,4000]ok\n")
        assert [l.text for l in doc.lines] == ["ok"]
        assert doc.warnings

    def test_not_lyl(self):
        with pytest.raises(WrongFormat):
            parse_lyl("hello")


class TestSpl:
    def test_words_explicit_end_and_translation(self):
        doc = parse_spl("[0:01.00]Hel<0:01.50>lo[0:02.00]\n[0:01.00]trans\n[0:03.000]plain\n")
        first, second = doc.lines
        assert spans(first.syllables) == [("Hel", 1000, 1500), ("lo", 1500, 2000)]
        assert first.translations == {"und": "trans"}
        assert (second.start_ms, second.end_ms, second.text) == (3000, 8000, "plain")

    def test_untimed_following_line_is_translation(self):
        doc = parse_spl("[0:01.00]main line\nthe translation\n[0:02.00]next\n")
        assert doc.lines[0].translations == {"und": "the translation"}
        assert doc.lines[0].end_ms == 2000

    def test_repeated_stamps(self):
        doc = parse_spl("[0:01.00][0:05.00]la\n[0:03.00]mid\n")
        assert [(l.start_ms, l.text) for l in doc.lines] == [(1000, "la"), (3000, "mid"), (5000, "la")]

    def test_not_spl(self):
        with pytest.raises(WrongFormat):
            parse_spl("hello")
