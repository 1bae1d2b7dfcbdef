from __future__ import annotations

# Upper bound for any timestamp or duration: about 11.5 days in milliseconds.
MAX_MS = 1_000_000_000


class NumberError(ValueError):
    def __init__(self, kind: str, message: str) -> None:
        # kind is "format" or "overflow"
        super().__init__(message)
        self.kind = kind


def parse_int(text: str, *, field: str = "value", maximum: int = MAX_MS) -> int:
    raw = text.strip()
    if not raw or not raw.isascii() or not raw.isdigit():
        raise NumberError("format", f"{field}: not a non-negative integer: {text!r}")
    value = int(raw)
    if value > maximum:
        raise NumberError("overflow", f"{field}: {value} exceeds {maximum}")
    return value
