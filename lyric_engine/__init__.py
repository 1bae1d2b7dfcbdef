from __future__ import annotations

from lyric_engine.converter import (
    GENERATORS,
    PARSERS,
    convert,
    detect_format,
    generate,
    generate_translations,
    merge_auxiliary,
    parse,
    run_pipeline,
)
from lyric_engine.errors import (
    Corrupt,
    EncodingFailure,
    LyricEngineError,
    MalformedDocument,
    StageFailed,
    UnsupportedFeature,
    Unrepresentable,
    WrongFormat,
)
from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument, LyricLine, Syllable
from lyric_engine.options import GenerateConfig, ParseOptions, PipelineConfig
from lyric_engine.pipeline import DEFAULT_STAGES, ProcessorKind

__version__ = "0.1.0"
