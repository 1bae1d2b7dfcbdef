from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping

from .util.timing import Resolution

if TYPE_CHECKING:
    from .processors.agents import AgentRules
    from .processors.chinese import Ruleset
    from .processors.stripper import StripRule


class SameTimestampStrategy(str, enum.Enum):
    FIRST_IS_MAIN = "first_is_main"
    ALL_ARE_MAIN = "all_are_main"
    HEURISTIC = "heuristic"


class LineEnding(str, enum.Enum):
    LF = "LF"
    CRLF = "CRLF"

    @property
    def chars(self) -> str:
        return "\r\n" if self is LineEnding.CRLF else "\n"


class EndTimeMode(str, enum.Enum):
    NEVER = "never"
    ALWAYS = "always"
    ON_LONG_PAUSE = "on_long_pause"


class BackgroundMode(str, enum.Enum):
    MERGE = "merge"  # "main (background)" on one line
    SEPARATE = "separate"  # background as its own timed line
    IGNORE = "ignore"


class ChineseMode(str, enum.Enum):
    REPLACE = "replace"
    ADD_AS_TRANSLATION = "add_as_translation"


@dataclass(frozen=True, slots=True)
class ParseOptions:
    lrc_same_timestamp: SameTimestampStrategy = SameTimestampStrategy.FIRST_IS_MAIN
    # Language tag given to translations whose source format does not name one.
    translation_language: str | None = None
    romanization_scheme: str = "und-Latn"

    def translation_lang(self, fallback: str = "und") -> str:
        return self.translation_language or fallback


@dataclass(frozen=True, slots=True)
class GenerateConfig:
    timestamp_resolution: Resolution = Resolution.MS
    inline_translation: bool = True
    line_ending: LineEnding = LineEnding.LF

    # LRC family
    lrc_end_time: EndTimeMode = EndTimeMode.NEVER
    lrc_pause_threshold_ms: int = 5000
    background: BackgroundMode = BackgroundMode.MERGE

    # ASS: replacement `[Script Info]` and `[V4+ Styles]` sections, headers included.
    ass_script_info: str | None = None
    ass_styles: str | None = None

    # Drop what the target cannot express (logged) instead of raising Unrepresentable.
    allow_lossy: bool = False
    encoding: str = "utf-8"

    @property
    def newline(self) -> str:
        return self.line_ending.chars


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    smoothing_threshold_ms: int = 0
    chinese_variant: str | None = None
    strip_metadata_lines: bool = False
    infer_agents: bool = False

    chinese_mode: ChineseMode = ChineseMode.REPLACE
    metadata_defaults: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    agent_rules: AgentRules | None = None
    strip_rules: tuple[StripRule, ...] | None = None
    ruleset: Ruleset | None = None  # overrides the OpenCC ruleset picked from chinese_variant
