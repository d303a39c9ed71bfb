"""
Transfer metadata attached to a staged payload file.

The transport carries {"type": "workout", "id": "<uuid>"} alongside the file so
it can route and label it without reading the body. The metadata is advisory:
receivers decode the file and check the two agree. On disagreement the
delivery counts as a decode failure.
"""
from typing import Any, Dict, Mapping
from uuid import UUID

from workout_relay.models.payload import WorkoutPayload
from workout_relay.transfer.codec import DecodingError

METADATA_TYPE_KEY = "type"
METADATA_TYPE_VALUE = "workout"
METADATA_ID_KEY = "id"


class EnvelopeMismatchError(DecodingError):
    """Raised when transfer metadata does not describe the decoded payload."""


def make_metadata(payload: WorkoutPayload) -> Dict[str, str]:
    """Metadata dict to hand to the transport together with the staged file."""
    return {
        METADATA_TYPE_KEY: METADATA_TYPE_VALUE,
        METADATA_ID_KEY: str(payload.id),
    }


def is_workout_metadata(metadata: Mapping[str, Any]) -> bool:
    """True if the transport metadata is tagged as a workout payload."""
    return metadata.get(METADATA_TYPE_KEY) == METADATA_TYPE_VALUE


def verify_metadata(metadata: Mapping[str, Any], payload: WorkoutPayload) -> None:
    """
    Cross-check transport metadata against the payload decoded from the file.

    Ids are compared as UUIDs, so letter case does not matter.

    Raises:
        EnvelopeMismatchError: wrong type tag, missing/invalid id, or an id
            that differs from payload.id.
    """
    if not is_workout_metadata(metadata):
        raise EnvelopeMismatchError(
            f"Transfer metadata type is {metadata.get(METADATA_TYPE_KEY)!r}, "
            f"expected {METADATA_TYPE_VALUE!r}"
        )

    raw_id = metadata.get(METADATA_ID_KEY)
    try:
        envelope_id = UUID(str(raw_id))
    except ValueError as exc:
        raise EnvelopeMismatchError(f"Transfer metadata id is not a UUID: {raw_id!r}") from exc

    if envelope_id != payload.id:
        raise EnvelopeMismatchError(
            f"Transfer metadata id {envelope_id} does not match payload id {payload.id}"
        )
