"""Library event persistence: repository protocol and SQLite implementation."""

from library_events.storage.base import LibraryEventRepository
from library_events.storage.sqlite import SqliteLibraryEventRepository

__all__ = [
    "LibraryEventRepository",
    "SqliteLibraryEventRepository",
]
