from __future__ import annotations

import base64
import json
import logging

import pytest

from lyric_engine.errors import Unrepresentable
from lyric_engine.generators.apple_json import generate_apple_json
from lyric_engine.generators.ass import generate_ass
from lyric_engine.generators.enhanced_lrc import generate_enhanced_lrc
from lyric_engine.generators.krc import generate_krc
from lyric_engine.generators.lrc import generate_lrc
from lyric_engine.generators.lyl import generate_lyl
from lyric_engine.generators.lys import generate_lys
from lyric_engine.generators.qrc import generate_qrc
from lyric_engine.generators.spl import generate_spl
from lyric_engine.generators.ttml import generate_ttml
from lyric_engine.generators.yrc import generate_yrc
from lyric_engine.model import LyricDocument, LyricLine, Syllable
from lyric_engine.options import BackgroundMode, EndTimeMode, GenerateConfig, LineEnding
from lyric_engine.parsers.ass import parse_ass
from lyric_engine.parsers.ttml import parse_ttml
from lyric_engine.util.timing import Resolution


def hello_doc(**line_kwargs) -> LyricDocument:
    return LyricDocument.build(
        [
            LyricLine.from_syllables([Syllable("Hel", 1000, 1500), Syllable("lo", 1500, 2000)], **line_kwargs),
            LyricLine(start_ms=3000, end_ms=4000, text="plain"),
        ],
        metadata={"title": ["T"], "artist": ["A"]},
    )


def background_doc() -> LyricDocument:
    return LyricDocument.build(
        [LyricLine.from_syllables([Syllable("a", 1000, 2000), Syllable("ooh", 1200, 1700, is_background=True)])]
    )


def duet_doc(*agents: str) -> LyricDocument:
    return LyricDocument.build(
        [
            LyricLine.from_syllables([Syllable(f"w{i}", i * 1000, i * 1000 + 500)], agent_id=agent)
            for i, agent in enumerate(agents)
        ]
    )


class TestLrc:
    def test_basic_output(self):
        text = generate_lrc(hello_doc(translations={"en": "Hi"}), GenerateConfig())
        assert text == "[ti:T]\n[ar:A]\n[00:01.000]Hello\n[00:01.000]Hi\n[00:03.000]plain\n"

    def test_centisecond_resolution_and_crlf(self):
        config = GenerateConfig(timestamp_resolution=Resolution.CS, line_ending=LineEnding.CRLF)
        text = generate_lrc(hello_doc(), config)
        assert text.endswith("[00:01.00]Hello\r\n[00:03.00]plain\r\n")

    @pytest.mark.parametrize(
        "mode,expected",
        [
            (EndTimeMode.NEVER, []),
            (EndTimeMode.ALWAYS, ["[00:02.000]", "[00:04.000]"]),
            (EndTimeMode.ON_LONG_PAUSE, ["[00:04.000]"]),
        ],
    )
    def test_end_markers(self, mode, expected):
        text = generate_lrc(hello_doc(), GenerateConfig(lrc_end_time=mode))
        markers = [row for row in text.splitlines() if row.endswith("]") and not row.startswith(("[ti", "[ar"))]
        assert markers == expected

    def test_romanization_follows_translation(self):
        text = generate_lrc(hello_doc(translations={"en": "Hi"}, romanization={"ja-Latn": "haro"}), GenerateConfig())
        assert "[00:01.000]Hi\n[00:01.000]haro\n" in text

    def test_romanization_without_translation_is_unrepresentable(self):
        with pytest.raises(Unrepresentable):
            generate_lrc(hello_doc(romanization={"ja-Latn": "haro"}), GenerateConfig())

    def test_several_agents(self, caplog):
        doc = duet_doc("v1", "v2")
        with pytest.raises(Unrepresentable) as exc:
            generate_lrc(doc, GenerateConfig())
        assert exc.value.kind == "unrepresentable"

        with caplog.at_level(logging.WARNING):
            text = generate_lrc(doc, GenerateConfig(allow_lossy=True))
        assert "[00:01.000]w1" in text
        assert any("drops" in r.getMessage() for r in caplog.records)

    def test_agent_names_cannot_be_tags(self):
        doc = LyricDocument.build(
            [LyricLine(start_ms=1000, end_ms=2000, text="a", agent_id="Alice")],
            metadata={"agent:Alice": ["Alice Smith"], "mood": ["calm"]},
        )
        with pytest.raises(Unrepresentable):
            generate_lrc(doc, GenerateConfig())
        text = generate_lrc(doc, GenerateConfig(allow_lossy=True))
        assert text.splitlines() == ["[mood:calm]", "[00:01.000]a"]

    def test_text_that_looks_like_a_timestamp(self):
        doc = LyricDocument.build([LyricLine(start_ms=1000, end_ms=2000, text="[00:01.00]x")])
        with pytest.raises(Unrepresentable):
            generate_lrc(doc, GenerateConfig())
        assert "[00:01.000]00:01.00]x" in generate_lrc(doc, GenerateConfig(allow_lossy=True))

    @pytest.mark.parametrize(
        "mode,expected",
        [
            (BackgroundMode.MERGE, ["[00:01.000]a (ooh)"]),
            (BackgroundMode.SEPARATE, ["[00:01.000]a", "[00:01.200](ooh)"]),
            (BackgroundMode.IGNORE, ["[00:01.000]a"]),
        ],
    )
    def test_background_modes(self, mode, expected):
        text = generate_lrc(background_doc(), GenerateConfig(background=mode))
        assert text.splitlines() == expected


class TestEnhancedLrc:
    def test_word_tags_and_translation(self):
        text = generate_enhanced_lrc(hello_doc(translations={"en": "Hi"}), GenerateConfig())
        assert text.splitlines()[2:] == [
            "[00:01.000]<00:01.000>Hel<00:01.500>lo<00:02.000>",
            "[00:01.000]Hi",
            "[00:03.000]<00:03.000>plain<00:04.000>",
        ]

    def test_gap_gets_its_own_stamp(self):
        doc = LyricDocument.build([LyricLine.from_syllables([Syllable("a", 0, 500), Syllable("b", 1000, 1500)])])
        assert generate_enhanced_lrc(doc, GenerateConfig()) == "[00:00.000]<00:00.000>a<00:00.500><00:01.000>b<00:01.500>\n"

    def test_romanization_is_unrepresentable(self):
        with pytest.raises(Unrepresentable):
            generate_enhanced_lrc(hello_doc(romanization={"ja-Latn": "haro"}), GenerateConfig())


class TestQrc:
    def test_background_on_the_next_line(self):
        assert generate_qrc(background_doc(), GenerateConfig()).splitlines() == [
            "[1000,1000]a(1000,1000)",
            "[1200,500](ooh)(1200,500)",
        ]

    def test_translations_are_unrepresentable(self):
        doc = hello_doc(translations={"en": "Hi"})
        with pytest.raises(Unrepresentable):
            generate_qrc(doc, GenerateConfig())
        assert "Hi" not in generate_qrc(doc, GenerateConfig(allow_lossy=True))

    def test_translations_off_is_not_an_error(self):
        text = generate_qrc(hello_doc(translations={"en": "Hi"}), GenerateConfig(inline_translation=False))
        assert "[1000,1000]Hel(1000,500)lo(1500,500)" in text


class TestLys:
    def test_sides_and_background_properties(self):
        doc = LyricDocument.build(
            [
                LyricLine.from_syllables([Syllable("a", 0, 500)], agent_id="v1"),
                LyricLine.from_syllables(
                    [Syllable("b", 1000, 1500), Syllable("c", 1100, 1300, is_background=True)], agent_id="v2"
                ),
                LyricLine.from_syllables([Syllable("d", 2000, 2500)]),
            ]
        )
        assert generate_lys(doc, GenerateConfig()).splitlines() == [
            "[4]a(0,500)",
            "[5]b(1000,500)",
            "[8](c)(1100,200)",
            "[3]d(2000,500)",
        ]

    def test_three_voices(self):
        with pytest.raises(Unrepresentable):
            generate_lys(duet_doc("v1", "v2", "v3"), GenerateConfig())


class TestKrc:
    def test_relative_offsets_and_language_block(self):
        text = generate_krc(hello_doc(translations={"en": "Hi"}), GenerateConfig())
        rows = text.splitlines()
        assert "[1000,1000]<0,500,0>Hel<500,500,0>lo" in rows
        (tag,) = [r for r in rows if r.startswith("[language:")]
        payload = json.loads(base64.b64decode(tag[len("[language:"):-1]).decode("utf-8"))
        (entry,) = payload["content"]
        assert entry["type"] == 1
        assert entry["lyricContent"] == [["Hi"], [""]]

    def test_language_metadata_is_unrepresentable(self):
        doc = hello_doc().set_metadata("language", ["ja"])
        with pytest.raises(Unrepresentable):
            generate_krc(doc, GenerateConfig())
        assert "[language:" not in generate_krc(doc, GenerateConfig(allow_lossy=True))


class TestYrc:
    def test_credit_lines_then_words(self):
        doc = LyricDocument.build(
            [LyricLine.from_syllables([Syllable("x", 2000, 3000)])], metadata={"lyricist": ["A", "B"]}
        )
        assert generate_yrc(doc, GenerateConfig()).splitlines() == [
            '{"t":0,"c":[{"tx":"作词: "},{"tx":"A"},{"tx":"/"},{"tx":"B"}]}',
            "[2000,1000](2000,1000,0)x",
        ]

    def test_other_metadata_is_unrepresentable(self, caplog):
        doc = LyricDocument.build(
            [LyricLine.from_syllables([Syllable("a", 1000, 1500)])], metadata={"isrc": ["X1"], "title": ["T"]}
        )
        with pytest.raises(Unrepresentable):
            generate_yrc(doc, GenerateConfig())
        with caplog.at_level(logging.WARNING):
            text = generate_yrc(doc, GenerateConfig(allow_lossy=True))
        assert "X1" not in text
        assert any("isrc" in r.getMessage() for r in caplog.records)


class TestLineFormats:
    def test_lyl(self):
        text = generate_lyl(hello_doc(), GenerateConfig())
        assert text.splitlines() == ["[type:LyricifyLines]", "[ti:T]", "[ar:A]", "[1000,2000]Hello", "[3000,4000]plain"]

    def test_lyl_translations_need_lossy(self):
        with pytest.raises(Unrepresentable):
            generate_lyl(hello_doc(translations={"en": "Hi"}), GenerateConfig())

    def test_spl(self):
        text = generate_spl(hello_doc(translations={"en": "Hi"}), GenerateConfig())
        assert text.splitlines()[2:] == [
            "[0:01.00]Hel<0:01.50>lo[0:02.00]",
            "[0:01.00]Hi",
            "[0:03.00]plain[0:04.00]",
        ]


class TestTtml:
    def test_markup(self):
        doc = LyricDocument.build(
            [
                LyricLine.from_syllables(
                    [Syllable("a", 1000, 2000), Syllable("ooh", 1200, 1700, is_background=True)],
                    agent_id="v1",
                    translations={"en": "A"},
                )
            ],
            metadata={"agent:v1": ["Alice"]},
        )
        text = generate_ttml(doc, GenerateConfig())
        assert 'itunes:key="L1"' in text
        assert 'ttm:agent="v1"' in text
        assert 'ttm:role="x-bg"' in text
        assert 'ttm:role="x-translation"' in text

        back = parse_ttml(text)
        (line,) = back.lines
        assert line.main_text == "a"
        assert line.background_text == "ooh"
        assert line.translations == {"en": "A"}
        assert back.first("agent:v1") == "Alice"

    def test_translations_in_itunes_metadata(self):
        text = generate_ttml(hello_doc(translations={"en": "Hi"}), GenerateConfig(inline_translation=False))
        assert "x-translation" not in text
        assert "iTunesMetadata" in text
        assert parse_ttml(text).lines[0].translations == {"en": "Hi"}

    def test_escaping(self):
        doc = LyricDocument.build([LyricLine(start_ms=0, end_ms=1000, text="a < b & c")])
        text = generate_ttml(doc, GenerateConfig())
        assert "a &lt; b &amp; c" in text
        assert parse_ttml(text).lines[0].text == "a < b & c"

    def test_mixed_case_agent_names_survive(self):
        doc = LyricDocument.build(
            [LyricLine(start_ms=0, end_ms=1000, text="hi", agent_id="Alice")],
            metadata={"agent:Alice": ["Alice Smith"]},
        )
        back = parse_ttml(generate_ttml(doc, GenerateConfig()))
        assert back.agents == {"Alice"}
        assert back.first("agent:Alice") == "Alice Smith"
        assert "Alice Smith" in generate_ttml(back, GenerateConfig())


def test_apple_json_envelope():
    doc = hello_doc().set_metadata("applemusicid", ["42"])
    payload = json.loads(generate_apple_json(doc, GenerateConfig()))
    (entry,) = payload["data"]
    assert entry["id"] == "42"
    assert entry["attributes"]["ttml"].startswith("<tt")
    assert entry["attributes"]["playParams"]["displayType"] == 3


class TestAss:
    def test_rows(self):
        text = generate_ass(hello_doc(translations={"en": "Hi"}), GenerateConfig())
        assert "Comment: 0,0:00:00.00,0:00:00.00,meta,,0,0,0,,title: T" in text
        assert r"Dialogue: 0,0:00:01.00,0:00:02.00,Default,,0,0,0,,{\k50}Hel{\k50}lo" in text
        assert "Dialogue: 0,0:00:01.00,0:00:02.00,ts,x-lang:en,0,0,0,,Hi" in text

    def test_read_back(self):
        doc = hello_doc(translations={"en": "Hi"})
        back = parse_ass(generate_ass(doc, GenerateConfig()))
        assert [l.raw_text for l in back.lines] == ["Hello", "plain"]
        assert back.lines[0].translations == {"en": "Hi"}
        assert back.first("title") == "T"

    def test_braces_are_escaped(self):
        doc = LyricDocument.build([LyricLine(start_ms=0, end_ms=1000, text="{x}")])
        assert parse_ass(generate_ass(doc, GenerateConfig())).lines[0].text == "{x}"

    def test_agent_names_survive(self):
        doc = LyricDocument.build(
            [LyricLine(start_ms=0, end_ms=1000, text="hi", agent_id="Alice")],
            metadata={"agent:Alice": ["Alice Smith"]},
        )
        back = parse_ass(generate_ass(doc, GenerateConfig()))
        assert back.lines[0].agent_id == "Alice"
        assert back.first("agent:Alice") == "Alice Smith"

    def test_custom_sections(self):
        config = GenerateConfig(
            ass_script_info="[Script Info]\nTitle: Karaoke\nScriptType: v4.00+\n",
            ass_styles=(
                "\n[V4+ Styles]\nFormat: Name, Fontname, Fontsize\nStyle: Default,Noto Sans,60\n"
            ),
        )
        text = generate_ass(hello_doc(), config)
        rows = text.splitlines()
        assert rows[: rows.index("[Events]")] == [
            "[Script Info]",
            "Title: Karaoke",
            "ScriptType: v4.00+",
            "",
            "[V4+ Styles]",
            "Format: Name, Fontname, Fontsize",
            "Style: Default,Noto Sans,60",
            "",
        ]
        assert [l.raw_text for l in parse_ass(text).lines] == ["Hello", "plain"]

    def test_default_sections(self):
        rows = generate_ass(hello_doc(), GenerateConfig(ass_script_info="  ")).splitlines()
        assert rows[0] == "[Script Info]"
        assert "PlayResX: 1920" in rows
        assert any(r.startswith("Style: bg-main,") for r in rows)
