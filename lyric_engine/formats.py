from __future__ import annotations

import enum

from .util.timing import Resolution


class FormatKind(str, enum.Enum):
    ASS = "ass"
    TTML = "ttml"
    APPLE_MUSIC_JSON = "json"
    LYS = "lys"
    LRC = "lrc"
    ENHANCED_LRC = "elrc"
    QRC = "qrc"
    YRC = "yrc"
    LYRICIFY_LINES = "lyl"
    SPL = "spl"
    LQE = "lqe"
    KRC = "krc"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def native_resolution(self) -> Resolution:
        """Finest timing the format can store."""
        if self in (FormatKind.ASS, FormatKind.SPL):
            return Resolution.CS
        return Resolution.MS

    @classmethod
    def from_string(cls, name: str) -> FormatKind | None:
        key = "".join(ch for ch in name.strip().upper() if ch.isalnum())
        alias = _ALIASES.get(key)
        if alias is not None:
            return alias
        for kind in cls:
            if key in (kind.name.replace("_", ""), kind.value.upper()):
                return kind
        return None


_DISPLAY_NAMES = {
    FormatKind.ASS: "ASS (Advanced SubStation Alpha)",
    FormatKind.TTML: "TTML",
    FormatKind.APPLE_MUSIC_JSON: "Apple Music JSON",
    FormatKind.LYS: "Lyricify Syllable",
    FormatKind.LRC: "LRC",
    FormatKind.ENHANCED_LRC: "Enhanced LRC",
    FormatKind.QRC: "QRC",
    FormatKind.YRC: "YRC",
    FormatKind.LYRICIFY_LINES: "Lyricify Lines",
    FormatKind.SPL: "SPL",
    FormatKind.LQE: "Lyricify Quick Export",
    FormatKind.KRC: "KRC",
}

_ALIASES = {
    "SSA": FormatKind.ASS,
    "SUBSTATIONALPHA": FormatKind.ASS,
    "XML": FormatKind.TTML,
    "APPLEMUSICJSON": FormatKind.APPLE_MUSIC_JSON,
    "LRCX": FormatKind.ENHANCED_LRC,
    "ALRC": FormatKind.ENHANCED_LRC,
    "ENHANCEDLRC": FormatKind.ENHANCED_LRC,
    "LYRICIFYSYLLABLE": FormatKind.LYS,
    "LYRICIFYLINES": FormatKind.LYRICIFY_LINES,
    "LYRICIFYQUICKEXPORT": FormatKind.LQE,
}
