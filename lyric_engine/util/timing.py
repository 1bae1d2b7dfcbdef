from __future__ import annotations

import enum
import re

from .numbers import NumberError, parse_int


class Resolution(str, enum.Enum):
    MS = "ms"
    CS = "cs"
    DS = "ds"

    @property
    def step_ms(self) -> int:
        return {"ms": 1, "cs": 10, "ds": 100}[self.value]


def coarsest(*resolutions: Resolution) -> Resolution:
    return max(resolutions, key=lambda r: r.step_ms)


def round_ms(ms: int, resolution: Resolution) -> int:
    # round half up
    step = resolution.step_ms
    return (ms + step // 2) // step * step


def round_span(start_ms: int, end_ms: int, resolution: Resolution) -> tuple[int, int]:
    start = round_ms(start_ms, resolution)
    end = round_ms(end_ms, resolution)
    return start, max(start, end)


def fmt_clock(ms: int, resolution: Resolution = Resolution.CS, minute_width: int = 2) -> str:
    """mm:ss.xx (or mm:ss.xxx at millisecond resolution)."""
    ms = round_ms(ms, resolution)
    m, rem = divmod(ms, 60_000)
    s, frac = divmod(rem, 1_000)
    if resolution is Resolution.MS:
        return f"{m:0{minute_width}d}:{s:02d}.{frac:03d}"
    return f"{m:0{minute_width}d}:{s:02d}.{frac // 10:02d}"


def clock_to_ms(minutes: str, seconds: str, fraction: str | None) -> int:
    """
    Combine the captured parts of a `mm:ss.xx` stamp.

    "2" -> 200ms, "23" -> 230ms, "234" -> 234ms; digits past the third are
    truncated. Seconds must be below 60.
    """
    m = parse_int(minutes, field="minutes")
    s = parse_int(seconds, field="seconds")
    if s >= 60:
        raise NumberError("overflow", f"seconds out of range: {s}")
    ms = int(fraction.ljust(3, "0")[:3]) if fraction else 0
    return (m * 60 + s) * 1000 + ms


def fmt_ass_time(ms: int) -> str:
    # H:MM:SS.cc
    cs = round_ms(ms, Resolution.CS) // 10
    h, rem = divmod(cs, 360_000)
    m, rem = divmod(rem, 6_000)
    s, cs2 = divmod(rem, 100)
    return f"{h}:{m:02d}:{s:02d}.{cs2:02d}"


_ASS_TIME_RE = re.compile(r"^\s*(\d+):(\d{2}):(\d{2})\.(\d{2})\s*$")


def parse_ass_time(text: str) -> int:
    m = _ASS_TIME_RE.match(text)
    if not m:
        raise NumberError("format", f"invalid ASS time: {text!r}")
    h, mm, ss, cs = (int(g) for g in m.groups())
    if mm >= 60 or ss >= 60:
        raise NumberError("overflow", f"ASS time out of range: {text!r}")
    return ((h * 60 + mm) * 60 + ss) * 1000 + cs * 10


_TTML_CLOCK_RE = re.compile(r"^(?:(?:(\d+):)?(\d+):)?(\d+)(?:\.(\d+))?$")
_TTML_OFFSET_RE = re.compile(r"^(\d+(?:\.\d+)?)(h|m|s|ms)$")


def parse_ttml_time(text: str) -> int:
    """Clock (`h:mm:ss.fff`, `mm:ss.fff`, `ss.fff`) or offset (`12.5s`, `300ms`) expressions."""
    value = text.strip()
    m = _TTML_OFFSET_RE.match(value)
    if m:
        amount = float(m.group(1))
        factor = {"h": 3_600_000, "m": 60_000, "s": 1_000, "ms": 1}[m.group(2)]
        return int(round(amount * factor))
    m = _TTML_CLOCK_RE.match(value)
    if not m:
        raise NumberError("format", f"invalid TTML time: {text!r}")
    hours, minutes, seconds, frac = m.groups()
    total = int(hours or 0) * 3600 + int(minutes or 0) * 60 + int(seconds)
    ms = int(frac.ljust(3, "0")[:3]) if frac else 0
    return total * 1000 + ms


def fmt_ttml_time(ms: int) -> str:
    h, rem = divmod(ms, 3_600_000)
    m, rem = divmod(rem, 60_000)
    s, frac = divmod(rem, 1_000)
    if h:
        return f"{h}:{m:02d}:{s:02d}.{frac:03d}"
    if m:
        return f"{m}:{s:02d}.{frac:03d}"
    return f"{s}.{frac:03d}"
