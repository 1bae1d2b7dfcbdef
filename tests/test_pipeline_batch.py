from __future__ import annotations

import pytest

from lyric_engine.errors import StageFailed, Unrepresentable, WrongFormat
from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument, LyricLine
from lyric_engine.options import PipelineConfig
from lyric_engine.pipeline import DEFAULT_STAGES, ProcessorKind, run_pipeline
from lyric_engine.processors.batch import ConvertJob, convert_batch, process_batch


class ExplodingRuleset:
    name = "boom"

    def convert(self, text: str) -> str:
        raise RuntimeError("ruleset exploded")


def han_doc(text: str = "愛") -> LyricDocument:
    return LyricDocument.build([LyricLine(start_ms=0, end_ms=1000, text=text)])


class TestPipeline:
    def test_default_order(self):
        assert [s.value for s in DEFAULT_STAGES] == ["strip_metadata", "agents", "metadata", "chinese", "smoothing"]

    def test_parse_list(self):
        assert ProcessorKind.parse_list("strip-metadata, agents,") == [
            ProcessorKind.STRIP_METADATA,
            ProcessorKind.AGENTS,
        ]
        with pytest.raises(ValueError):
            ProcessorKind.parse_list("agents, nonsense")

    def test_disabled_stages_leave_the_document_alone(self):
        doc = han_doc()
        assert run_pipeline(doc) == doc

    def test_stages_run_in_the_given_order(self):
        doc = LyricDocument.build(
            [LyricLine(start_ms=0, end_ms=1000, text="作词：A"), LyricLine(start_ms=1000, end_ms=2000, text="A: hi")]
        )
        config = PipelineConfig(strip_metadata_lines=True, infer_agents=True)
        out = run_pipeline(doc, [ProcessorKind.STRIP_METADATA, ProcessorKind.AGENTS], config)
        assert [(l.text, l.agent_id) for l in out.lines] == [("hi", "v1")]
        assert out.metadata["lyricist"] == ("A",)

    def test_failure_names_the_stage(self):
        with pytest.raises(StageFailed) as exc:
            run_pipeline(han_doc(), config=PipelineConfig(ruleset=ExplodingRuleset()))
        assert exc.value.stage == "chinese"
        assert isinstance(exc.value.cause, RuntimeError)


class TestProcessBatch:
    def test_failures_are_isolated_and_order_is_kept(self):
        docs = [han_doc("a"), han_doc("愛"), han_doc("b")]
        results = process_batch(docs, config=PipelineConfig(ruleset=ExplodingRuleset()), workers=2)
        assert [r.index for r in results] == [0, 1, 2]
        assert [r.ok for r in results] == [True, False, True]
        assert results[1].failed_stage == "chinese"
        assert results[2].document.lines[0].text == "b"

    def test_empty_batch(self):
        assert process_batch([]) == []


class TestConvertBatch:
    def test_mixed_jobs(self):
        jobs = [
            ConvertJob("[00:01.00]a\n", FormatKind.QRC),
            ConvertJob("no timing at all", FormatKind.QRC),
            ConvertJob("[00:01.00]x\n", FormatKind.LRC, source=FormatKind.QRC),
            ConvertJob(
                "[00:01.00]a\n[00:01.00]b\n",
                FormatKind.QRC,
            ),
            ConvertJob(
                "[00:01.00]hello\n",
                FormatKind.LRC,
                translations=(("[00:01.00]bonjour\n", "fr"),),
            ),
        ]
        results = convert_batch(jobs, workers=3)
        assert [r.index for r in results] == [0, 1, 2, 3, 4]

        assert results[0].output == b"[1000,10000]a(1000,10000)\n"
        assert isinstance(results[1].error, WrongFormat)
        assert results[1].failed_stage == "parse"
        assert results[2].failed_stage == "parse"
        assert isinstance(results[3].error, Unrepresentable)
        assert results[3].failed_stage == "generate"
        assert results[3].document is not None
        assert results[4].output == b"[00:01.000]hello\n[00:01.000]bonjour\n"

    def test_undetectable_translation_fails_the_job(self):
        (result,) = convert_batch([ConvertJob("[00:01.00]a\n", FormatKind.LRC, translations=(("???", "fr"),))])
        assert result.failed_stage == "parse"

    def test_pipeline_failure(self):
        (result,) = convert_batch(
            [ConvertJob("[00:01.00]愛\n", FormatKind.LRC)],
            pipeline_config=PipelineConfig(ruleset=ExplodingRuleset()),
        )
        assert result.failed_stage == "chinese"
        assert isinstance(result.error, StageFailed)
