from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping

from .errors import MalformedDocument


def _check_time(value: object, what: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedDocument(f"{what} must be an integer, got {value!r}")
    if value < 0:
        raise MalformedDocument(f"{what} must be non-negative, got {value}")


def _check_text(value: object, what: str) -> str:
    if not isinstance(value, str) or not value:
        raise MalformedDocument(f"{what} must be a non-empty string, got {value!r}")
    return value


def _text_map(mapping: Mapping[str, str], what: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for key, value in mapping.items():
        out[_check_text(key, f"{what} key")] = _check_text(value, f"{what}[{key!r}]")
    return out


def _check_track(syllables: list[Syllable], what: str) -> None:
    for prev, cur in zip(syllables, syllables[1:]):
        if cur.start_ms < prev.end_ms:
            raise MalformedDocument(
                f"{what} syllables overlap: {prev.text!r} ends at {prev.end_ms}, "
                f"{cur.text!r} starts at {cur.start_ms}"
            )


@dataclass(frozen=True, slots=True)
class Syllable:
    text: str
    start_ms: int
    end_ms: int
    is_background: bool = False

    def __post_init__(self) -> None:
        _check_text(self.text, "Syllable text")
        _check_time(self.start_ms, "Syllable start_ms")
        _check_time(self.end_ms, "Syllable end_ms")
        if self.end_ms < self.start_ms:
            raise MalformedDocument(
                f"Syllable {self.text!r} ends before it starts ({self.start_ms} > {self.end_ms})"
            )

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    def with_timing(self, start_ms: int, end_ms: int) -> Syllable:
        return replace(self, start_ms=start_ms, end_ms=end_ms)

    def with_text(self, text: str) -> Syllable:
        return replace(self, text=text)


@dataclass(frozen=True, slots=True)
class LyricLine:
    """
    One lyric line.

    Syllables are stored main track first, background track second. Each track
    is ordered and non-overlapping; the two tracks may overlap each other.
    `start_ms`/`end_ms` must equal the earliest syllable start and the latest
    syllable end. `text` is only allowed on line-timed lines, `raw_text` is
    always derived.
    """

    start_ms: int
    end_ms: int
    syllables: tuple[Syllable, ...] = ()
    text: str | None = None
    agent_id: str | None = None
    translations: Mapping[str, str] = field(default_factory=dict)
    romanization: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _check_time(self.start_ms, "Line start_ms")
        _check_time(self.end_ms, "Line end_ms")
        if self.end_ms < self.start_ms:
            raise MalformedDocument(f"Line ends before it starts ({self.start_ms} > {self.end_ms})")

        syllables = tuple(self.syllables)
        for s in syllables:
            if not isinstance(s, Syllable):
                raise MalformedDocument(f"Expected Syllable, got {type(s).__name__}")
        object.__setattr__(self, "syllables", syllables)

        if self.text is not None:
            _check_text(self.text, "Line text")
            if syllables:
                raise MalformedDocument("Line text is derived from syllables and cannot be set explicitly")
        if self.agent_id is not None:
            _check_text(self.agent_id, "agent_id")

        object.__setattr__(self, "translations", _text_map(self.translations, "translations"))
        object.__setattr__(self, "romanization", _text_map(self.romanization, "romanization"))

        if not syllables:
            return
        seen_background = False
        for s in syllables:
            if s.is_background:
                seen_background = True
            elif seen_background:
                raise MalformedDocument("Main syllables must precede background syllables")
        _check_track([s for s in syllables if not s.is_background], "Main")
        _check_track([s for s in syllables if s.is_background], "Background")

        lo = min(s.start_ms for s in syllables)
        hi = max(s.end_ms for s in syllables)
        if (self.start_ms, self.end_ms) != (lo, hi):
            raise MalformedDocument(
                f"Line bounds ({self.start_ms}, {self.end_ms}) do not match its syllables ({lo}, {hi})"
            )

    @classmethod
    def from_syllables(cls, syllables: Iterable[Syllable], **kwargs) -> LyricLine:
        syls = sorted(syllables, key=lambda s: s.is_background)  # stable: keeps track order
        if not syls:
            raise MalformedDocument("A syllable-timed line needs at least one syllable")
        return cls(
            start_ms=min(s.start_ms for s in syls),
            end_ms=max(s.end_ms for s in syls),
            syllables=tuple(syls),
            **kwargs,
        )

    @property
    def is_syllable_timed(self) -> bool:
        return bool(self.syllables)

    @property
    def main_syllables(self) -> tuple[Syllable, ...]:
        return tuple(s for s in self.syllables if not s.is_background)

    @property
    def background_syllables(self) -> tuple[Syllable, ...]:
        return tuple(s for s in self.syllables if s.is_background)

    @property
    def raw_text(self) -> str:
        if self.syllables:
            return "".join(s.text for s in self.syllables)
        return self.text or ""

    @property
    def main_text(self) -> str:
        if self.syllables:
            return "".join(s.text for s in self.syllables if not s.is_background)
        return self.text or ""

    @property
    def background_text(self) -> str:
        return "".join(s.text for s in self.syllables if s.is_background)

    def with_syllables(self, syllables: Iterable[Syllable]) -> LyricLine:
        syls = list(syllables)
        if not syls:
            return replace(self, syllables=(), text=None)
        return LyricLine.from_syllables(
            syls,
            agent_id=self.agent_id,
            translations=self.translations,
            romanization=self.romanization,
        )

    def with_text(self, text: str | None) -> LyricLine:
        return replace(self, text=text)

    def with_timing(self, start_ms: int, end_ms: int) -> LyricLine:
        return replace(self, start_ms=start_ms, end_ms=end_ms)

    def with_agent(self, agent_id: str | None) -> LyricLine:
        return replace(self, agent_id=agent_id)

    def with_translation(self, lang: str, text: str) -> LyricLine:
        return replace(self, translations={**self.translations, lang: text})

    def with_romanization(self, scheme: str, text: str) -> LyricLine:
        return replace(self, romanization={**self.romanization, scheme: text})


@dataclass(frozen=True, slots=True)
class LyricDocument:
    lines: tuple[LyricLine, ...] = ()
    metadata: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    agents: frozenset[str] = frozenset()
    warnings: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        lines = tuple(self.lines)
        for line in lines:
            if not isinstance(line, LyricLine):
                raise MalformedDocument(f"Expected LyricLine, got {type(line).__name__}")
        object.__setattr__(self, "lines", lines)

        metadata: dict[str, tuple[str, ...]] = {}
        for key, values in self.metadata.items():
            _check_text(key, "Metadata key")
            if isinstance(values, str):
                raise MalformedDocument(f"Metadata {key!r} must be a sequence of strings")
            metadata[key] = tuple(_check_text(v, f"Metadata {key!r} value") for v in values)
            if not metadata[key]:
                raise MalformedDocument(f"Metadata {key!r} has no values")
        object.__setattr__(self, "metadata", metadata)

        agents = frozenset(self.agents)
        for agent in agents:
            _check_text(agent, "Agent id")
        object.__setattr__(self, "agents", agents)
        object.__setattr__(self, "warnings", tuple(self.warnings))

        last_end: dict[str, int] = {}
        for i, line in enumerate(lines):
            if line.agent_id is not None and line.agent_id not in agents:
                raise MalformedDocument(f"Line {i} references undeclared agent {line.agent_id!r}")
            if i and line.start_ms < lines[i - 1].start_ms:
                raise MalformedDocument(
                    f"Line {i} starts at {line.start_ms}, before line {i - 1} ({lines[i - 1].start_ms})"
                )
            # Unknown voices (no agent) may overlap; a known voice cannot sing two lines at once.
            if line.agent_id is not None:
                if line.start_ms < last_end.get(line.agent_id, 0):
                    raise MalformedDocument(
                        f"Line {i} overlaps an earlier line of agent {line.agent_id!r}"
                    )
                last_end[line.agent_id] = max(last_end.get(line.agent_id, 0), line.end_ms)

    @classmethod
    def build(
        cls,
        lines: Iterable[LyricLine],
        metadata: Mapping[str, Iterable[str]] | None = None,
        warnings: Iterable[str] = (),
        agents: Iterable[str] = (),
    ) -> LyricDocument:
        """Construct a document, declaring every agent the lines reference."""
        lines = tuple(lines)
        declared = set(agents) | {l.agent_id for l in lines if l.agent_id is not None}
        return cls(
            lines=lines,
            metadata={k: tuple(v) for k, v in (metadata or {}).items()},
            agents=frozenset(declared),
            warnings=tuple(warnings),
        )

    @property
    def is_syllable_timed(self) -> bool:
        return any(line.syllables for line in self.lines)

    @property
    def has_background(self) -> bool:
        return any(s.is_background for line in self.lines for s in line.syllables)

    @property
    def translation_languages(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for line in self.lines:
            seen.update(dict.fromkeys(line.translations))
        return tuple(seen)

    @property
    def romanization_schemes(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for line in self.lines:
            seen.update(dict.fromkeys(line.romanization))
        return tuple(seen)

    def first(self, key: str) -> str | None:
        values = self.metadata.get(key)
        return values[0] if values else None

    def with_lines(self, lines: Iterable[LyricLine]) -> LyricDocument:
        lines = tuple(lines)
        used = {l.agent_id for l in lines if l.agent_id is not None}
        return replace(self, lines=lines, agents=self.agents | used)

    def replace_line(self, index: int, line: LyricLine) -> LyricDocument:
        lines = list(self.lines)
        lines[index] = line
        return self.with_lines(lines)

    def with_metadata(self, metadata: Mapping[str, Iterable[str]]) -> LyricDocument:
        return replace(self, metadata={k: tuple(v) for k, v in metadata.items()})

    def set_metadata(self, key: str, values: Iterable[str]) -> LyricDocument:
        return self.with_metadata({**self.metadata, key: tuple(values)})

    def add_warnings(self, *messages: str) -> LyricDocument:
        if not messages:
            return self
        return replace(self, warnings=self.warnings + tuple(messages))
