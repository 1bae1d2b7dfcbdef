from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, Sequence

from lyric_engine.converter import detect_format, generate, parse
from lyric_engine.errors import LyricEngineError, StageFailed, WrongFormat
from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument
from lyric_engine.options import GenerateConfig, ParseOptions, PipelineConfig
from lyric_engine.merge import merge_auxiliary
from lyric_engine.pipeline import DEFAULT_STAGES, ProcessorKind, run_pipeline

logger = logging.getLogger(__name__)

STAGE_PARSE = "parse"
STAGE_GENERATE = "generate"


@dataclass(frozen=True, slots=True)
class BatchResult:
    """Outcome of one batch item. `failed_stage` is `parse`, a processor name or `generate`."""

    index: int
    document: LyricDocument | None = None
    output: bytes | None = None
    error: LyricEngineError | None = None
    failed_stage: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class ConvertJob:
    data: bytes | str
    target: FormatKind
    source: FormatKind | None = None
    options: ParseOptions | None = None
    # (data, language) pairs merged in as translations
    translations: tuple[tuple[bytes | str, str], ...] = ()


def _process_one(index: int, doc: LyricDocument, stages: tuple[ProcessorKind, ...], config: PipelineConfig) -> BatchResult:
    try:
        return BatchResult(index, document=run_pipeline(doc, stages, config))
    except StageFailed as e:
        logger.warning("batch item %d failed in %s: %s", index, e.stage, e.message)
        return BatchResult(index, error=e, failed_stage=e.stage)


def process_batch(
    docs: Sequence[LyricDocument],
    stages: Iterable[ProcessorKind] = DEFAULT_STAGES,
    config: PipelineConfig | None = None,
    workers: int | None = None,
) -> list[BatchResult]:
    """
    Run the pipeline over every document concurrently. Results come back in
    input order and a failure in one document never affects the others.
    """
    stages = tuple(ProcessorKind(s) for s in stages)
    config = config or PipelineConfig()
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_process_one, i, doc, stages, config) for i, doc in enumerate(docs)]
        return [f.result() for f in futures]


def _convert_one(
    index: int,
    job: ConvertJob,
    stages: tuple[ProcessorKind, ...],
    pipeline_config: PipelineConfig,
    config: GenerateConfig,
) -> BatchResult:
    try:
        source = job.source or detect_format(job.data)
        if source is None:
            raise WrongFormat("any supported format", "format detection failed")
        doc = parse(source, job.data, job.options)
        for data, language in job.translations:
            aux_source = detect_format(data)
            if aux_source is None:
                raise WrongFormat("any supported format", f"cannot detect the {language} translation file")
            doc = merge_auxiliary(doc, parse(aux_source, data, job.options), language=language)
    except LyricEngineError as e:
        logger.warning("batch item %d failed to parse: %s", index, e.message)
        return BatchResult(index, error=e, failed_stage=STAGE_PARSE)

    result = _process_one(index, doc, stages, pipeline_config)
    if not result.ok:
        return result
    try:
        output = generate(job.target, result.document, config)
    except LyricEngineError as e:
        logger.warning("batch item %d failed to generate %s: %s", index, job.target.value, e.message)
        return BatchResult(index, document=result.document, error=e, failed_stage=STAGE_GENERATE)
    return BatchResult(index, document=result.document, output=output)


def convert_batch(
    jobs: Sequence[ConvertJob],
    stages: Iterable[ProcessorKind] = DEFAULT_STAGES,
    pipeline_config: PipelineConfig | None = None,
    config: GenerateConfig | None = None,
    workers: int | None = None,
) -> list[BatchResult]:
    """Parse, process and generate every job concurrently; results keep input order."""
    stages = tuple(ProcessorKind(s) for s in stages)
    pipeline_config = pipeline_config or PipelineConfig()
    config = config or GenerateConfig()
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [
            pool.submit(_convert_one, i, job, stages, pipeline_config, config) for i, job in enumerate(jobs)
        ]
        results = [f.result() for f in futures]
    failed = sum(1 for r in results if not r.ok)
    logger.info("batch: %d converted, %d failed", len(results) - failed, failed)
    return results
