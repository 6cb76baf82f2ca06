"""SQLite-backed library event repository."""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

import aiosqlite

from core.errors import IntegrityError, wrap_exception
from core.logging import log_with_context
from library_events.schemas.events import (
    Book,
    LibraryEvent,
    LibraryEventType,
    PersistedLibraryEvent,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS library_event (
    library_event_id    INTEGER PRIMARY KEY AUTOINCREMENT,
    library_event_type  TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS book (
    library_event_id    INTEGER PRIMARY KEY
                        REFERENCES library_event(library_event_id),
    book_id             INTEGER NOT NULL,
    book_name           TEXT,
    book_author         TEXT
);

CREATE INDEX IF NOT EXISTS idx_book_book_id ON book(book_id);
"""

_SELECT_BY_ID = """
SELECT e.library_event_id, e.library_event_type, b.book_id, b.book_name, b.book_author
FROM library_event e
JOIN book b ON b.library_event_id = e.library_event_id
WHERE e.library_event_id = ?
"""

_UPSERT_BOOK = """
INSERT INTO book (library_event_id, book_id, book_name, book_author)
VALUES (?, ?, ?, ?)
ON CONFLICT(library_event_id) DO UPDATE SET
    book_id = excluded.book_id,
    book_name = excluded.book_name,
    book_author = excluded.book_author
"""


def _row_to_persisted(row: tuple) -> PersistedLibraryEvent:
    return PersistedLibraryEvent(
        library_event_id=row[0],
        library_event_type=LibraryEventType(row[1]),
        book=Book(book_id=row[2], book_name=row[3], book_author=row[4]),
    )


class SqliteLibraryEventRepository:
    """SQLite library event store.

    One connection per instance, shared by every partition task of a
    dispatcher. A lock serializes access so each upsert runs its own
    transaction on that connection.
    """

    def __init__(self, db_path: Union[str, Path], busy_timeout: int = 5000) -> None:
        self._db_path = str(db_path)
        self._busy_timeout = busy_timeout
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def _ensure_conn(self) -> aiosqlite.Connection:
        # Callers hold self._lock
        if self._conn is None:
            try:
                conn = await aiosqlite.connect(self._db_path)
                await conn.execute("PRAGMA foreign_keys=ON")
                await conn.execute(f"PRAGMA busy_timeout={self._busy_timeout}")
                if self._db_path != ":memory:":
                    await conn.execute("PRAGMA journal_mode=WAL")
                await conn.executescript(_SCHEMA)
                await conn.commit()
            except Exception as e:
                raise wrap_exception(e, context={"db_path": self._db_path}) from e
            self._conn = conn
            log_with_context(
                logger, logging.INFO, "Opened library event store", db_path=self._db_path
            )
        return self._conn

    async def close(self) -> None:
        """Close the database connection once in-flight work has finished."""
        async with self._lock:
            if self._conn:
                await self._conn.close()
                self._conn = None

    async def upsert(self, event: LibraryEvent) -> PersistedLibraryEvent:
        """Insert or update the event and its book in one transaction."""
        async with self._lock:
            conn = await self._ensure_conn()
            try:
                await conn.execute("BEGIN IMMEDIATE")
                try:
                    if event.library_event_id is None:
                        library_event_id = await self._insert(conn, event)
                    else:
                        library_event_id = await self._update(conn, event)
                    await conn.execute(
                        _UPSERT_BOOK,
                        (
                            library_event_id,
                            event.book.book_id,
                            event.book.book_name,
                            event.book.book_author,
                        ),
                    )
                    await conn.commit()
                except BaseException:
                    # A failed COMMIT leaves the transaction open on the shared connection
                    if conn.in_transaction:
                        await conn.rollback()
                    raise
            except IntegrityError:
                raise
            except Exception as e:
                raise wrap_exception(
                    e, context={"library_event_id": event.library_event_id}
                ) from e

        return PersistedLibraryEvent(
            library_event_id=library_event_id,
            library_event_type=event.library_event_type,
            book=event.book,
        )

    async def _insert(self, conn: aiosqlite.Connection, event: LibraryEvent) -> int:
        cursor = await conn.execute(
            "INSERT INTO library_event (library_event_type) VALUES (?)",
            (event.library_event_type.value,),
        )
        return cursor.lastrowid

    async def _update(self, conn: aiosqlite.Connection, event: LibraryEvent) -> int:
        cursor = await conn.execute(
            "UPDATE library_event SET library_event_type = ? WHERE library_event_id = ?",
            (event.library_event_type.value, event.library_event_id),
        )
        if cursor.rowcount == 0:
            raise IntegrityError(
                f"Library event {event.library_event_id} does not exist",
                context={"library_event_id": event.library_event_id},
            )
        return event.library_event_id

    async def find_by_id(self, library_event_id: int) -> Optional[PersistedLibraryEvent]:
        """Return the persisted event with this id, or None."""
        async with self._lock:
            conn = await self._ensure_conn()
            try:
                cursor = await conn.execute(_SELECT_BY_ID, (library_event_id,))
                row = await cursor.fetchone()
            except Exception as e:
                raise wrap_exception(e, context={"library_event_id": library_event_id}) from e
        return _row_to_persisted(row) if row else None

    async def count(self) -> int:
        """Number of persisted library events."""
        async with self._lock:
            conn = await self._ensure_conn()
            cursor = await conn.execute("SELECT COUNT(*) FROM library_event")
            row = await cursor.fetchone()
        return row[0]
