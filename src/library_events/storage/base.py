"""
Persistence protocol for library events.

The consumer depends only on this interface; the backing store is
pluggable. Implementations must make upsert() atomic for the event and its
book, and idempotent for repeated UPDATEs.
"""

from typing import Optional, Protocol, runtime_checkable

from library_events.schemas.events import LibraryEvent, PersistedLibraryEvent


@runtime_checkable
class LibraryEventRepository(Protocol):
    """
    Protocol for library event persistence.

    Errors must be raised as pipeline errors so the processor can route them:
    TransientStoreError for conditions that may clear on retry,
    IntegrityError for writes the store will never accept.
    """

    async def upsert(self, event: LibraryEvent) -> PersistedLibraryEvent:
        """
        Insert or update a library event together with its book.

        Args:
            event: Event to persist. No id inserts with a store-assigned id,
                an id updates the existing row in place.

        Returns:
            The persisted state after the write

        Raises:
            TransientStoreError: Store unavailable, locked, or timed out
            IntegrityError: Constraint violation or unknown id on update
        """
        ...

    async def find_by_id(self, library_event_id: int) -> Optional[PersistedLibraryEvent]:
        """Return the persisted event with this id, or None."""
        ...

    async def close(self) -> None:
        """Release the store connection."""
        ...
