"""
lineproto.py — JSON log record → InfluxDB line protocol.

Typing is decided by field name, never by JSON type: every value arrives as
a JSON string and is coerced according to FIELD_TYPES.

    response_size, header_size   digits        → 512i
    duration                     digits.digits → 0.125
    anything else                any string    → "text with \\" quotes"

Fields are emitted in the order they first appear in the source JSON, so
the same payload always encodes to the same bytes.

Usage:
    from influxforward.lineproto import parse_payload, encode_record
    record = parse_payload(b'{"time":"1600000000","status":"200"}')
    encode_record(record, "logs")   # 'logs status="200" 1600000000'
"""

import json
import re
from enum import Enum

from .errors import PayloadError

TIME_KEY = "time"

FIELD_KEY_RE = re.compile(r"[a-z_]+")
INTEGER_RE = re.compile(r"[0-9]+")
FLOAT_RE = re.compile(r"[0-9]+\.[0-9]+")


class FieldType(Enum):
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"


# status is deliberately a string field: "200" stays "200"
FIELD_TYPES = {
    "response_size": FieldType.INTEGER,
    "header_size": FieldType.INTEGER,
    "duration": FieldType.FLOAT,
}


def field_type(key: str) -> FieldType:
    return FIELD_TYPES.get(key, FieldType.STRING)


# ── Parse ─────────────────────────────────────────────────────────────

def _reject_duplicates(pairs):
    record = {}
    for key, value in pairs:
        if key in record:
            raise PayloadError(f"duplicate key {key!r} in log record")
        record[key] = value
    return record


def parse_payload(payload: bytes) -> dict[str, str]:
    """Decode a pushed payload into a flat str → str mapping.

    Raises PayloadError on bad UTF-8/JSON, a non-object top level,
    duplicate keys or any non-string value (nested objects included).
    """
    try:
        # bytes given to json.loads would be sniffed as UTF-16/32 too
        text = payload.decode("utf-8")
        doc = json.loads(text, object_pairs_hook=_reject_duplicates)
    except ValueError as e:
        # UnicodeDecodeError and JSONDecodeError both land here
        raise PayloadError(f"payload is not valid JSON: {e}") from e

    if not isinstance(doc, dict):
        raise PayloadError(f"expected a JSON object, got {type(doc).__name__}")
    for key, value in doc.items():
        if not isinstance(value, str):
            raise PayloadError(
                f"don't know how to handle value {value!r} of type "
                f"{type(value).__name__} for key {key!r}"
            )
    return doc


# ── Encode ────────────────────────────────────────────────────────────

def escape_measurement(name: str) -> str:
    """Line-protocol measurement escaping: commas and spaces."""
    return name.replace(",", "\\,").replace(" ", "\\ ")


def encode_value(key: str, value: str) -> str:
    """Render one field value according to its name-based type."""
    kind = field_type(key)
    if kind is FieldType.INTEGER:
        if not INTEGER_RE.fullmatch(value):
            raise PayloadError(f"expected key={key} to be an integer value but was {value!r}")
        return value + "i"
    if kind is FieldType.FLOAT:
        if not FLOAT_RE.fullmatch(value):
            raise PayloadError(f"expected key={key} to be a float value but was {value!r}")
        return value
    return '"' + value.replace('"', '\\"') + '"'


def encode_record(record: dict[str, str], measurement: str) -> str:
    """Build one line-protocol statement, seconds-precision timestamp last."""
    timestamp = record.get(TIME_KEY)
    if timestamp is None:
        raise PayloadError("log record has no 'time' key")
    if not isinstance(timestamp, str) or not INTEGER_RE.fullmatch(timestamp):
        raise PayloadError(f"unexpected characters in timestamp {timestamp!r}")

    fields = []
    for key, value in record.items():
        if key == TIME_KEY:
            continue
        if not FIELD_KEY_RE.fullmatch(key):
            raise PayloadError(f"unexpected characters in field key {key!r}")
        fields.append(f"{key}={encode_value(key, value)}")

    line = escape_measurement(measurement)
    if fields:
        line += " " + ",".join(fields)
    return f"{line} {timestamp}"
