from __future__ import annotations

from dataclasses import dataclass


class LyricEngineError(Exception):
    """Base class. `kind` is stable and machine-readable, the message is for humans."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MalformedDocument(LyricEngineError, ValueError):
    kind = "malformed_document"


# Parsing


@dataclass(frozen=True, slots=True)
class Location:
    line: int | None = None  # 1-based
    offset: int | None = None  # byte or character offset

    def __str__(self) -> str:
        parts = []
        if self.line is not None:
            parts.append(f"line {self.line}")
        if self.offset is not None:
            parts.append(f"offset {self.offset}")
        return ", ".join(parts) or "unknown location"


class ParseError(LyricEngineError):
    kind = "parse_error"


class WrongFormat(ParseError):
    kind = "wrong_format"

    def __init__(self, fmt: str, reason: str) -> None:
        super().__init__(f"Input is not {fmt}: {reason}")
        self.format = fmt
        self.reason = reason


class Corrupt(ParseError):
    kind = "corrupt"

    def __init__(self, fmt: str, reason: str, location: Location | None = None) -> None:
        self.location = location or Location()
        super().__init__(f"Corrupt {fmt} input at {self.location}: {reason}")
        self.format = fmt
        self.reason = reason


class UnsupportedFeature(ParseError):
    kind = "unsupported_feature"

    def __init__(self, fmt: str, feature: str) -> None:
        super().__init__(f"{fmt} feature not supported: {feature}")
        self.format = fmt
        self.feature = feature


# Generation


class GenerateError(LyricEngineError):
    kind = "generate_error"


class Unrepresentable(GenerateError):
    kind = "unrepresentable"

    def __init__(self, fmt: str, feature: str) -> None:
        super().__init__(f"{fmt} cannot represent {feature}")
        self.format = fmt
        self.feature = feature


class EncodingFailure(GenerateError):
    kind = "encoding_failure"

    def __init__(self, encoding: str, reason: str) -> None:
        super().__init__(f"Cannot encode output as {encoding}: {reason}")
        self.encoding = encoding


# Pipeline


class PipelineError(LyricEngineError):
    kind = "pipeline_error"


class StageFailed(PipelineError):
    kind = "stage_failed"

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"Stage {stage!r} failed: {cause}")
        self.stage = stage
        self.cause = cause
