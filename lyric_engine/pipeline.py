from __future__ import annotations

import enum
import logging
from typing import Callable, Iterable

from .errors import StageFailed
from .model import LyricDocument
from .options import PipelineConfig
from .processors.agents import recognize_agents
from .processors.chinese import convert_chinese
from .processors.metadata import process_metadata
from .processors.smoothing import smooth_document
from .processors.stripper import strip_metadata_lines

logger = logging.getLogger(__name__)


class ProcessorKind(str, enum.Enum):
    AGENTS = "agents"
    METADATA = "metadata"
    STRIP_METADATA = "strip_metadata"
    CHINESE = "chinese"
    SMOOTHING = "smoothing"

    @classmethod
    def parse_list(cls, text: str) -> list[ProcessorKind]:
        """`"strip_metadata, agents"` -> [STRIP_METADATA, AGENTS]."""
        out = []
        for name in text.split(","):
            name = name.strip().lower().replace("-", "_")
            if name:
                out.append(cls(name))
        return out


DEFAULT_STAGES: tuple[ProcessorKind, ...] = (
    ProcessorKind.STRIP_METADATA,
    ProcessorKind.AGENTS,
    ProcessorKind.METADATA,
    ProcessorKind.CHINESE,
    ProcessorKind.SMOOTHING,
)

Processor = Callable[[LyricDocument, PipelineConfig], LyricDocument]

PROCESSORS: dict[ProcessorKind, Processor] = {
    ProcessorKind.AGENTS: recognize_agents,
    ProcessorKind.METADATA: process_metadata,
    ProcessorKind.STRIP_METADATA: strip_metadata_lines,
    ProcessorKind.CHINESE: convert_chinese,
    ProcessorKind.SMOOTHING: smooth_document,
}

_missing = set(ProcessorKind) - set(PROCESSORS)
if _missing:
    raise RuntimeError(f"no processor registered for {sorted(m.value for m in _missing)}")


def is_enabled(stage: ProcessorKind, config: PipelineConfig) -> bool:
    if stage is ProcessorKind.AGENTS:
        return config.infer_agents
    if stage is ProcessorKind.STRIP_METADATA:
        return config.strip_metadata_lines
    if stage is ProcessorKind.CHINESE:
        return bool(config.chinese_variant) or config.ruleset is not None
    if stage is ProcessorKind.SMOOTHING:
        return config.smoothing_threshold_ms > 0
    return True


def run_pipeline(
    doc: LyricDocument,
    stages: Iterable[ProcessorKind] = DEFAULT_STAGES,
    config: PipelineConfig | None = None,
) -> LyricDocument:
    """
    Run `stages` in order. Stages switched off by `config` are skipped; an
    exception from a stage is re-raised as StageFailed naming it.
    """
    config = config or PipelineConfig()
    for stage in stages:
        stage = ProcessorKind(stage)
        if not is_enabled(stage, config):
            logger.debug("stage %s skipped", stage.value)
            continue
        try:
            doc = PROCESSORS[stage](doc, config)
        except Exception as e:
            raise StageFailed(stage.value, e) from e
        logger.debug("stage %s done: %d lines", stage.value, len(doc.lines))
    return doc
