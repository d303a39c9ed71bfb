"""
WorkoutPayload JSON codec.

Wire format (shared with the watch and phone apps, see models.payload for the
key mapping):

  - one compact JSON object per file, non-ASCII text as \\u escapes
  - start/end as integer milliseconds since the Unix epoch
  - id in canonical UUID text form
  - absent optionals are omitted, never written as null or 0
  - every number finite (NaN / Infinity make encode() fail)

decode() accepts any schemaVersion from 1 up to MAX_SUPPORTED_SCHEMA_VERSION
and refuses anything newer with UnsupportedSchemaVersionError. Unknown keys
from newer producers are ignored. Version 1 payloads simply have no kmSplits.
"""
import json
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union
from uuid import UUID

from pydantic import ValidationError

from workout_relay.models.payload import CURRENT_SCHEMA_VERSION, WorkoutPayload

MAX_SUPPORTED_SCHEMA_VERSION = CURRENT_SCHEMA_VERSION

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)
_TIMESTAMP_KEYS = ("start", "end")


class EncodingError(ValueError):
    """Raised when a payload holds a value JSON cannot represent."""


class DecodingError(ValueError):
    """Raised when bytes cannot be turned into a valid WorkoutPayload."""


class UnsupportedSchemaVersionError(DecodingError):
    """Raised when a payload was written by a newer schema than we understand."""

    def __init__(self, version: int, supported: int = MAX_SUPPORTED_SCHEMA_VERSION):
        super().__init__(
            f"schemaVersion {version} is newer than the highest supported version {supported}"
        )
        self.version = version
        self.supported = supported


# ── Timestamps ───────────────────────────────────────────────────────────────

def datetime_to_millis(value: datetime) -> int:
    """Aware datetime → integer ms since epoch (floor)."""
    return (value - _EPOCH) // _ONE_MS


def millis_to_datetime(value: Union[int, float]) -> datetime:
    """ms since epoch → aware UTC datetime. Fractional ms are dropped later by the model."""
    return _EPOCH + timedelta(milliseconds=value)


# ── Encode ───────────────────────────────────────────────────────────────────

def _find_non_finite(node: Any, path: str) -> Optional[str]:
    """Return the path of the first NaN/Infinity in a dumped payload, if any."""
    if isinstance(node, float) and not math.isfinite(node):
        return path
    if isinstance(node, dict):
        for key, value in node.items():
            found = _find_non_finite(value, f"{path}.{key}" if path else key)
            if found:
                return found
    if isinstance(node, (list, tuple)):
        for i, value in enumerate(node):
            found = _find_non_finite(value, f"{path}[{i}]")
            if found:
                return found
    return None


def encode(payload: WorkoutPayload) -> bytes:
    """
    Serialize a payload to its canonical wire bytes.

    Raises:
        EncodingError: if any numeric field is NaN or infinite.
    """
    doc: Dict[str, Any] = payload.model_dump(by_alias=True, exclude_none=True)

    bad_path = _find_non_finite(doc, "")
    if bad_path:
        raise EncodingError(f"Payload {payload.id}: non-finite value at {bad_path}")

    doc["id"] = str(payload.id)
    for key in _TIMESTAMP_KEYS:
        doc[key] = datetime_to_millis(getattr(payload, key))

    try:
        text = json.dumps(doc, allow_nan=False, separators=(",", ":"))
        return text.encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise EncodingError(f"Payload {payload.id} is not representable as JSON: {exc}") from exc


# ── Decode ───────────────────────────────────────────────────────────────────

def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not allowed")


def _parse_id(raw: Any) -> UUID:
    if not isinstance(raw, str):
        raise DecodingError(f"Missing or non-string id: {raw!r}")
    try:
        return UUID(raw)
    except ValueError as exc:
        raise DecodingError(f"id is not a UUID: {raw!r}") from exc


def _parse_timestamp(doc: Dict[str, Any], key: str) -> datetime:
    raw = doc.get(key)
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise DecodingError(f"Missing or non-numeric {key} timestamp: {raw!r}")
    try:
        return millis_to_datetime(raw)
    except OverflowError as exc:
        raise DecodingError(f"{key} timestamp out of range: {raw!r}") from exc


def decode(data: Union[bytes, str]) -> WorkoutPayload:
    """
    Parse wire bytes into a WorkoutPayload.

    Raises:
        UnsupportedSchemaVersionError: schemaVersion is newer than we support.
        DecodingError: malformed JSON, missing/ill-typed fields, or a
            structural invariant is violated.
    """
    try:
        doc = json.loads(data, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as exc:  # JSONDecodeError and UnicodeDecodeError included
        raise DecodingError(f"Malformed payload JSON: {exc}") from exc

    if not isinstance(doc, dict):
        raise DecodingError(f"Payload must be a JSON object, got {type(doc).__name__}")

    version = doc.get("schemaVersion")
    if isinstance(version, bool) or not isinstance(version, int):
        raise DecodingError(f"Missing or non-integer schemaVersion: {version!r}")
    if version > MAX_SUPPORTED_SCHEMA_VERSION:
        raise UnsupportedSchemaVersionError(version)

    fields = dict(doc)
    fields["id"] = _parse_id(doc.get("id"))
    for key in _TIMESTAMP_KEYS:
        fields[key] = _parse_timestamp(doc, key)

    try:
        return WorkoutPayload.model_validate(fields)
    except ValidationError as exc:
        raise DecodingError(f"Invalid payload {fields['id']}: {exc}") from exc
