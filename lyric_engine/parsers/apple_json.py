from __future__ import annotations

import json

from lyric_engine.errors import Corrupt, Location, WrongFormat
from lyric_engine.model import LyricDocument
from lyric_engine.options import ParseOptions

from .ttml import parse_ttml


def parse_apple_json(text: str, options: ParseOptions | None = None) -> LyricDocument:
    """
    Apple Music lyrics API response:
    `{"data": [{"id": "...", "attributes": {"ttml": "<tt ...>"}, ...}]}`.

    The embedded TTML goes through the TTML parser; the catalog id is kept as
    `applemusicid` metadata. Fields other than these are ignored.
    """
    stripped = text.lstrip("\ufeff").strip()
    if not stripped.startswith("{"):
        raise WrongFormat("Apple Music JSON", "input is not a JSON object")
    try:
        payload = json.loads(stripped)
    except json.JSONDecodeError as e:
        raise Corrupt("Apple Music JSON", e.msg, Location(line=e.lineno, offset=e.pos)) from e

    entry = _first_entry(payload)
    attributes = entry.get("attributes") if isinstance(entry, dict) else None
    ttml = attributes.get("ttml") if isinstance(attributes, dict) else None
    if not isinstance(ttml, str) or not ttml.strip():
        raise Corrupt("Apple Music JSON", "no data[0].attributes.ttml string")

    doc = parse_ttml(ttml, options)
    song_id = entry.get("id")
    if isinstance(song_id, (str, int)) and str(song_id).strip():
        values = doc.metadata.get("applemusicid", ())
        if str(song_id) not in values:
            doc = doc.set_metadata("applemusicid", (*values, str(song_id)))
    return doc


def _first_entry(payload: object) -> dict:
    if not isinstance(payload, dict):
        return {}
    data = payload.get("data")
    if isinstance(data, list) and data and isinstance(data[0], dict):
        return data[0]
    # a bare resource object without the `data` envelope
    if "attributes" in payload:
        return payload
    return {}
