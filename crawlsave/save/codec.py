"""
Record codec - SaveRecord <-> storable blob.

Pipeline:
    record -> canonical JSON -> token compression -> checksum envelope -> bytes

Canonical JSON is compact, key-sorted and ASCII-only. Because every
non-ASCII character is escaped, the sigil "§" can never occur in canonical
text, so compression codes cannot collide with save data. Compression only
rewrites whole tokens: object keys and the bare literals null/true/false.
String values are copied through untouched.

Blob layout:
    CSAV1 <base64 sha256 of payload>\\n<compressed payload>
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import re
from typing import Any, Union

import pydantic

from crawlsave.errors import DeserializationError, SerializationError
from crawlsave.save.record import (
    INVENTORY_SLOTS,
    REQUIRED_SECTIONS,
    SECTION_MODELS,
    SaveRecord,
    section_from_dict,
)

logger = logging.getLogger(__name__)

MAGIC = "CSAV1"
SIGIL = "§"

# Order is the compression order; decompression uses the same list swapped.
COMPRESSION_DICTIONARY: list[tuple[str, str]] = [
    ('"id":', '§i:'),
    ('"name":', '§n:'),
    ('"level":', '§l:'),
    ('"type":', '§t:'),
    ('"quantity":', '§q:'),
    ('"rarity":', '§r:'),
    ('"stats":', '§s:'),
    ('"equipment":', '§e:'),
    ('"player_position":', '§p:'),
    ('"item":', '§m:'),
    ('"class":', '§c:'),
    ('null', '§0'),
    ('true', '§1'),
    ('false', '§2'),
]

_COMPRESS = dict(COMPRESSION_DICTIONARY)
_DECOMPRESS = {code: token for token, code in COMPRESSION_DICTIONARY}

# A complete JSON string (optionally followed by ":" when it is a key), or a bare literal.
_TOKEN_RE = re.compile(r'("(?:[^"\\]|\\.)*")(:?)|\b(null|true|false)\b')
_CODE_RE = re.compile("|".join(re.escape(code) for _, code in COMPRESSION_DICTIONARY))


def to_canonical_text(data: Any) -> str:
    """Compact, key-sorted, ASCII-only JSON."""
    return json.dumps(data, sort_keys=True, separators=(',', ':'), ensure_ascii=True, allow_nan=False)


def compress(text: str) -> str:
    """Replace dictionary tokens in canonical JSON with sigil codes."""

    def replace(match: re.Match) -> str:
        string, colon, literal = match.groups()
        if literal is not None:
            return _COMPRESS[literal]
        if colon:
            return _COMPRESS.get(string + colon, match.group(0))
        return match.group(0)

    return _TOKEN_RE.sub(replace, text)


def decompress(text: str) -> str:
    """Reverse compress()."""
    return _CODE_RE.sub(lambda m: _DECOMPRESS[m.group(0)], text)


def calculate_checksum(payload: bytes) -> str:
    """Base64-encoded SHA-256 of the payload."""
    return base64.b64encode(hashlib.sha256(payload).digest()).decode('ascii')


def serialize(record: SaveRecord) -> bytes:
    """
    Encode a record as a blob.

    Raises:
        SerializationError: If the record cannot be encoded
    """
    try:
        text = to_canonical_text(record.to_dict())
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Save serialization failed: {e}") from e

    compressed = compress(text)
    payload = compressed.encode('utf-8')
    header = f"{MAGIC} {calculate_checksum(payload)}\n".encode('ascii')

    logger.debug(
        f"Save data serialized: {len(text)} -> {len(compressed)} chars "
        f"({round((1 - len(compressed) / max(len(text), 1)) * 100)}% compression)"
    )
    return header + payload


def decode_payload(blob: Union[bytes, bytearray]) -> dict[str, Any]:
    """
    Verify and decode a blob into raw save data (no schema applied).

    Raises:
        DeserializationError: If the blob is truncated, tampered or unparseable
    """
    if not isinstance(blob, (bytes, bytearray)):
        raise DeserializationError(f"Save blob must be bytes, got {type(blob).__name__}")

    header, sep, payload = bytes(blob).partition(b"\n")
    if not sep:
        raise DeserializationError("Save blob has no header")

    try:
        magic, checksum = header.decode('ascii').split(" ")
    except (UnicodeDecodeError, ValueError):
        raise DeserializationError("Save blob header is malformed") from None
    if magic != MAGIC:
        raise DeserializationError(f"Unknown save format: {magic!r}")
    if calculate_checksum(payload) != checksum:
        raise DeserializationError("Save blob checksum mismatch (truncated or corrupted)")

    try:
        text = decompress(payload.decode('utf-8'))
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DeserializationError(f"Save payload is not valid: {e}") from e

    if not isinstance(data, dict):
        raise DeserializationError("Save payload root must be an object")
    return data


def record_from_dict(data: dict[str, Any], inventory_slots: int = INVENTORY_SLOTS) -> SaveRecord:
    """
    Rebuild a SaveRecord from raw save data.

    Required sections must be present. Unknown fields are dropped with a
    warning, the inventory is padded or truncated to ``inventory_slots``.
    Field values are left for SaveValidator to judge.

    Raises:
        DeserializationError: On missing sections or broken structure
    """
    missing = [name for name in REQUIRED_SECTIONS if not isinstance(data.get(name), dict)]
    if missing:
        raise DeserializationError(f"Save data missing sections: {', '.join(missing)}")

    for key in data:
        if key not in SECTION_MODELS:
            logger.warning(f"Dropping unknown save section: {key}")

    sections: dict[str, Any] = {}
    for name, model in SECTION_MODELS.items():
        raw = data.get(name)
        if raw is None:
            continue
        if not isinstance(raw, dict):
            raise DeserializationError(f"Section {name} must be an object")
        if name == "inventory" and isinstance(raw.get("slots"), list):
            raw = dict(raw, slots=_fit_slots(raw["slots"], inventory_slots))
        try:
            sections[name] = section_from_dict(model, raw, name)
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in (name, *first["loc"]))
            raise DeserializationError(
                f"Save data does not match schema: {field}: {first['msg']} "
                f"({e.error_count()} error(s))"
            ) from e
    return SaveRecord(**sections)


def deserialize(blob: Union[bytes, bytearray], inventory_slots: int = INVENTORY_SLOTS) -> SaveRecord:
    """
    Decode a blob into a fresh SaveRecord.

    Raises:
        DeserializationError: If the blob is malformed or corrupt
    """
    return record_from_dict(decode_payload(blob), inventory_slots)


def _fit_slots(slots: list[Any], count: int) -> list[Any]:
    if len(slots) != count:
        logger.warning(f"Inventory has {len(slots)} slots, fitting to {count}")
    fitted = list(slots[:count])
    fitted.extend([None] * (count - len(fitted)))
    return fitted
