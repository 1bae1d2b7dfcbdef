from __future__ import annotations

import pytest

from lyric_engine.errors import Corrupt, WrongFormat
from lyric_engine.options import ParseOptions, SameTimestampStrategy
from lyric_engine.parsers.enhanced_lrc import parse_enhanced_lrc
from lyric_engine.parsers.lrc import parse_lrc


def spans(line):
    return [(s.text, s.start_ms, s.end_ms) for s in line.syllables]


class TestLrc:
    def test_basic_lines_and_tags(self):
        doc = parse_lrc("[ti:Song]\n[ar:Someone]\n[00:01.00]hello\n[00:03.50]world\n")
        assert [(l.start_ms, l.end_ms, l.text) for l in doc.lines] == [
            (1000, 3500, "hello"),
            (3500, 13500, "world"),
        ]
        assert doc.metadata == {"title": ("Song",), "artist": ("Someone",)}

    def test_multiple_timestamps_repeat_the_line(self):
        doc = parse_lrc("[00:01.00][00:05.00]la\n[00:03.00]mid\n")
        assert [(l.start_ms, l.end_ms, l.text) for l in doc.lines] == [
            (1000, 3000, "la"),
            (3000, 5000, "mid"),
            (5000, 15000, "la"),
        ]

    def test_millisecond_and_colon_fractions(self):
        doc = parse_lrc("[00:01.234]a\n[00:02:50]b\n")
        assert [l.start_ms for l in doc.lines] == [1234, 2500]

    def test_same_timestamp_first_is_main(self):
        doc = parse_lrc("[00:01.00]こんにちは\n[00:01.00]Hello\n[00:01.00]konnichiwa\n[00:02.00]\n")
        (line,) = doc.lines
        assert line.text == "こんにちは"
        assert line.translations == {"und": "Hello"}
        assert line.romanization == {"und-Latn": "konnichiwa"}
        assert line.end_ms == 2000

    def test_translation_language_option(self):
        doc = parse_lrc("[00:01.00]a\n[00:01.00]b\n", ParseOptions(translation_language="en"))
        assert doc.lines[0].translations == {"en": "b"}

    def test_same_timestamp_all_are_main(self):
        options = ParseOptions(lrc_same_timestamp=SameTimestampStrategy.ALL_ARE_MAIN)
        doc = parse_lrc("[00:01.00]a\n[00:01.00]b\n[00:02.00]c\n", options)
        assert [(l.start_ms, l.text) for l in doc.lines] == [(1000, "a"), (1000, "b"), (2000, "c")]

    def test_same_timestamp_heuristic(self):
        options = ParseOptions(lrc_same_timestamp=SameTimestampStrategy.HEURISTIC)
        doc = parse_lrc("[00:01.00]konnichiwa\n[00:01.00]你好\n[00:01.00]こんにちは\n", options)
        (line,) = doc.lines
        assert line.text == "こんにちは"
        assert line.translations == {"und": "你好"}
        assert line.romanization == {"und-Latn": "konnichiwa"}

    def test_extra_same_timestamp_lines_warn(self):
        doc = parse_lrc("[00:01.00]a\n[00:01.00]b\n[00:01.00]c\n[00:01.00]d\n")
        assert len(doc.lines) == 1
        assert any("extra line" in w for w in doc.warnings)

    def test_disordered_input_is_sorted(self):
        doc = parse_lrc("[00:05.00]b\n[00:01.00]a\n")
        assert [l.text for l in doc.lines] == ["a", "b"]
        assert doc.lines[0].end_ms == 5000

    def test_seconds_out_of_range_dropped_with_warning(self):
        doc = parse_lrc("[00:61.00]bad\n[00:01.00]ok\n")
        assert [l.text for l in doc.lines] == ["ok"]
        assert any("invalid timestamp" in w for w in doc.warnings)

    def test_word_tags_are_dropped(self):
        doc = parse_lrc("[00:01.00]<00:01.00>a<00:01.50>b\n")
        assert doc.lines[0].text == "ab"

    def test_metadata_only(self):
        doc = parse_lrc("[ti:Only tags]\n")
        assert doc.lines == ()
        assert doc.first("title") == "Only tags"

    def test_not_lrc(self):
        with pytest.raises(WrongFormat):
            parse_lrc("just some words\n")

    def test_no_valid_timestamp(self):
        with pytest.raises(Corrupt):
            parse_lrc("[00:99.00]x\n")

    def test_bom_and_crlf(self):
        doc = parse_lrc("\ufeff[00:01.00]a\r\n[00:02.00]b\r\n")
        assert [l.text for l in doc.lines] == ["a", "b"]


class TestEnhancedLrc:
    def test_word_stamps(self):
        doc = parse_enhanced_lrc(
            "[00:01.00]<00:01.00>Hel<00:01.50>lo <00:02.00>world<00:03.00>\n"
            "[00:04.00]<00:04.00>next\n"
        )
        first, second = doc.lines
        assert spans(first) == [("Hel", 1000, 1500), ("lo ", 1500, 2000), ("world", 2000, 3000)]
        assert first.raw_text == "Hello world"
        # open last word at the end of the file lasts one second
        assert spans(second) == [("next", 4000, 5000)]

    def test_open_word_ends_at_next_line(self):
        doc = parse_enhanced_lrc("[00:01.00]<00:01.00>a\n[00:02.50]<00:02.50>b<00:03.00>\n")
        assert spans(doc.lines[0]) == [("a", 1000, 2500)]

    def test_gap_stamp_leaves_a_gap(self):
        doc = parse_enhanced_lrc("[00:01.00]<00:01.00>a<00:01.50><00:02.00>b<00:02.50>\n")
        assert spans(doc.lines[0]) == [("a", 1000, 1500), ("b", 2000, 2500)]

    def test_translation_repeats_the_stamp(self):
        doc = parse_enhanced_lrc("[00:01.00]<00:01.00>a<00:02.00>\n[00:01.00]A-trans\n")
        (line,) = doc.lines
        assert line.translations == {"und": "A-trans"}

    def test_plain_line_is_line_timed(self):
        doc = parse_enhanced_lrc("[00:01.00]plain\n[00:02.00]<00:02.00>w<00:03.00>\n")
        assert doc.lines[0].text == "plain"
        assert doc.lines[0].end_ms == 2000
        assert doc.lines[1].is_syllable_timed

    def test_not_enhanced_lrc(self):
        with pytest.raises(WrongFormat):
            parse_enhanced_lrc("nothing timed here")
