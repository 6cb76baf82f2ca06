"""
Kafka message schemas.

Pydantic models for library event messages with validation and serialization.

Schemas:
    events.py   - LibraryEvent, Book, PersistedLibraryEvent
    codec.py    - decode/encode between wire bytes and LibraryEvent

Design Decisions:
    - Pydantic for validation and JSON serialization
    - camelCase wire names via field aliases, snake_case in Python
    - Explicit codec functions (no dict-based messages past the edge)
"""

from library_events.schemas.codec import decode_library_event, encode_library_event
from library_events.schemas.events import (
    Book,
    LibraryEvent,
    LibraryEventType,
    PersistedLibraryEvent,
)

__all__ = [
    "Book",
    "LibraryEvent",
    "LibraryEventType",
    "PersistedLibraryEvent",
    "decode_library_event",
    "encode_library_event",
]
