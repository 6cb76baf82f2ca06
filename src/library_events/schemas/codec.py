"""
Wire codec for library events.

decode_library_event() turns raw Kafka value bytes into a LibraryEvent,
raising DecodeError for anything that is not valid for the schema.
encode_library_event() produces the camelCase JSON the topics carry.
"""

import json
from typing import Optional

import pydantic

from core.errors import DecodeError
from library_events.schemas.events import LibraryEvent


def decode_library_event(payload: Optional[bytes]) -> LibraryEvent:
    """
    Parse a Kafka message value into a LibraryEvent.

    Args:
        payload: Raw message value bytes

    Returns:
        Validated LibraryEvent

    Raises:
        DecodeError: If the payload is empty, not UTF-8 JSON, or does not
            match the event schema
    """
    if not payload:
        raise DecodeError("Message value is empty")

    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError("Message value is not valid JSON", cause=e) from e

    if not isinstance(data, dict):
        raise DecodeError(
            f"Message value must be a JSON object, got {type(data).__name__}"
        )

    try:
        return LibraryEvent.model_validate(data)
    except pydantic.ValidationError as e:
        fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise DecodeError(
            f"Message does not match library event schema: {', '.join(fields)}",
            cause=e,
            context={"invalid_fields": fields},
        ) from e


def encode_library_event(event: LibraryEvent) -> bytes:
    """Serialize a LibraryEvent to wire JSON bytes."""
    return event.model_dump_json(by_alias=True).encode("utf-8")
