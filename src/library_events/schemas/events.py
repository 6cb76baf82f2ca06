"""
Library event message schemas.

Contains Pydantic models for library events consumed from the main and
retry topics, and the persisted form returned by the repository.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator


class LibraryEventType(str, Enum):
    """Kind of catalog change carried by a library event.

    NEW is the create kind; the wire value "CREATE" is accepted as an alias.
    """

    NEW = "NEW"
    UPDATE = "UPDATE"


class Book(BaseModel):
    """Book owned by a library event.

    Attributes:
        book_id: Catalog identifier of the book (bookId)
        book_name: Title (bookName)
        book_author: Author (bookAuthor)
    """

    model_config = ConfigDict(populate_by_name=True)

    book_id: StrictInt = Field(..., alias="bookId", description="Catalog identifier of the book")
    book_name: Optional[str] = Field(default=None, alias="bookName")
    book_author: Optional[str] = Field(default=None, alias="bookAuthor")


class LibraryEvent(BaseModel):
    """Schema for library events on the main and retry topics.

    Attributes:
        library_event_id: Store identity; absent for NEW events (libraryEventId)
        library_event_type: NEW or UPDATE (libraryEventType)
        book: The book the event creates or updates

    Example:
        >>> event = LibraryEvent.model_validate({
        ...     "libraryEventId": None,
        ...     "libraryEventType": "NEW",
        ...     "book": {"bookId": 123, "bookName": "Kafka Using Spring Boot", "bookAuthor": "Dilip"},
        ... })
        >>> event.book.book_id
        123
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "libraryEventId": None,
                    "libraryEventType": "NEW",
                    "book": {
                        "bookId": 123,
                        "bookName": "Kafka Using Spring Boot",
                        "bookAuthor": "Dilip",
                    },
                }
            ]
        },
    )

    library_event_id: Optional[StrictInt] = Field(default=None, alias="libraryEventId")
    library_event_type: LibraryEventType = Field(..., alias="libraryEventType")
    book: Book

    @field_validator("library_event_type", mode="before")
    @classmethod
    def normalize_event_type(cls, v: Any) -> Any:
        """Accept CREATE as the wire alias for NEW."""
        if isinstance(v, str) and v.strip().upper() == "CREATE":
            return LibraryEventType.NEW
        return v

    @property
    def message_key(self) -> Optional[str]:
        """Kafka key for this event: the id as text, or None for creates."""
        if self.library_event_id is None:
            return None
        return str(self.library_event_id)


class PersistedLibraryEvent(BaseModel):
    """Durable form of a library event as returned by the repository."""

    model_config = ConfigDict(populate_by_name=True)

    library_event_id: int = Field(..., alias="libraryEventId")
    library_event_type: LibraryEventType = Field(..., alias="libraryEventType")
    book: Book
