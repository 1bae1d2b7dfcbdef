from __future__ import annotations

import json
from xml.etree import ElementTree as ET

from lyric_engine.formats import FormatKind
from lyric_engine.model import LyricDocument
from lyric_engine.options import GenerateConfig

from .ttml import build_tree

WORD_DISPLAY = 3
LINE_DISPLAY = 2


def generate_apple_json(doc: LyricDocument, config: GenerateConfig) -> str:
    """The Apple Music lyrics API envelope around the TTML rendition of `doc`."""
    ttml = ET.tostring(build_tree(doc, config, FormatKind.APPLE_MUSIC_JSON), encoding="unicode")
    play_params: dict[str, object] = {
        "kind": "lyric",
        "displayType": WORD_DISPLAY if doc.is_syllable_timed else LINE_DISPLAY,
    }
    entry: dict[str, object] = {"type": "syllable-lyrics", "attributes": {"ttml": ttml, "playParams": play_params}}
    song_id = doc.first("applemusicid")
    if song_id:
        entry = {"id": song_id, **entry}
        play_params.update({"id": f"AP_{song_id}", "catalogId": song_id})
    payload = {"data": [entry]}
    return json.dumps(payload, ensure_ascii=False, indent=2) + config.newline
