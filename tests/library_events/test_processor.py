"""
Unit tests for LibraryEventProcessor.

Uses a real in-memory SQLite repository and a RetryHandler with a mocked
producer, so persistence and routing are exercised end to end without a
broker.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.errors import TransientStoreError, ValidationError
from library_events.processor import (
    LibraryEventProcessor,
    ProcessingOutcome,
    validate_library_event,
)
from library_events.retry import RetryHandler
from library_events.schemas import Book, LibraryEvent, LibraryEventType
from library_events.storage import SqliteLibraryEventRepository


@pytest.fixture
def mock_producer():
    producer = AsyncMock()
    producer.send.return_value = MagicMock(topic="t", partition=0, offset=1)
    return producer


@pytest.fixture
async def retry_handler(kafka_config, mock_producer):
    handler = RetryHandler(kafka_config, producer=mock_producer)
    await handler.start()
    return handler


@pytest.fixture
def processor(repository, retry_handler):
    return LibraryEventProcessor(repository, retry_handler)


def _published_topics(mock_producer):
    return [c.kwargs["topic"] for c in mock_producer.send.call_args_list]


class TestValidateLibraryEvent:
    """Tests for id/type pairing rules."""

    def test_new_without_id_valid(self):
        validate_library_event(
            LibraryEvent(library_event_type=LibraryEventType.NEW, book=Book(book_id=1))
        )

    def test_update_with_id_valid(self):
        validate_library_event(
            LibraryEvent(
                library_event_id=1,
                library_event_type=LibraryEventType.UPDATE,
                book=Book(book_id=1),
            )
        )

    def test_update_without_id_invalid(self):
        with pytest.raises(ValidationError, match="libraryEventId"):
            validate_library_event(
                LibraryEvent(library_event_type=LibraryEventType.UPDATE, book=Book(book_id=1))
            )

    def test_new_with_id_invalid(self):
        with pytest.raises(ValidationError):
            validate_library_event(
                LibraryEvent(
                    library_event_id=5,
                    library_event_type=LibraryEventType.NEW,
                    book=Book(book_id=1),
                )
            )


@pytest.mark.asyncio
class TestLibraryEventProcessor:
    """Test suite for LibraryEventProcessor.process."""

    async def test_new_event_persisted(
        self, processor, repository, mock_producer, make_record, new_event_payload
    ):
        """A NEW event is stored with a generated id and no publish."""
        outcome = await processor.process(make_record(new_event_payload))

        assert outcome == ProcessingOutcome.PERSISTED
        assert await repository.count() == 1
        persisted = await repository.find_by_id(1)
        assert persisted is not None
        assert persisted.book.book_id == 123
        assert persisted.book.book_name == "Kafka Using Spring Boot"
        mock_producer.send.assert_not_awaited()

    async def test_update_without_id_dead_lettered_without_persisting(
        self, kafka_config, retry_handler, mock_producer, make_record, new_event_payload
    ):
        """An UPDATE without an id never reaches the store and goes to DLQ."""
        repository = AsyncMock()
        processor = LibraryEventProcessor(repository, retry_handler)
        payload = {**new_event_payload, "libraryEventType": "UPDATE"}

        outcome = await processor.process(make_record(payload))

        assert outcome == ProcessingOutcome.DEAD_LETTERED
        repository.upsert.assert_not_awaited()
        assert _published_topics(mock_producer) == [kafka_config.dlq_topic]
        headers = mock_producer.send.call_args.kwargs["headers"]
        assert headers["errorClass"] == "ValidationError"
        assert headers["retryCount"] == "0"

    @pytest.mark.parametrize("retry_count", ["0", "2", "3", "7"])
    async def test_update_without_id_never_retried(
        self, kafka_config, retry_handler, mock_producer, make_record, new_event_payload,
        retry_count,
    ):
        repository = AsyncMock()
        processor = LibraryEventProcessor(repository, retry_handler)
        payload = {**new_event_payload, "libraryEventType": "UPDATE"}

        await processor.process(make_record(payload, headers={"retryCount": retry_count}))

        repository.upsert.assert_not_awaited()
        assert _published_topics(mock_producer) == [kafka_config.dlq_topic]
        assert mock_producer.send.call_args.kwargs["headers"]["retryCount"] == retry_count

    async def test_malformed_payload_dead_lettered(
        self, kafka_config, processor, mock_producer, make_record
    ):
        record = make_record(b'{"libraryEventType": ', key=b"abc")

        outcome = await processor.process(record)

        assert outcome == ProcessingOutcome.DEAD_LETTERED
        call = mock_producer.send.call_args
        assert call.kwargs["topic"] == kafka_config.dlq_topic
        assert call.kwargs["key"] == b"abc"
        assert call.kwargs["value"] == record.value
        assert call.kwargs["headers"]["errorClass"] == "DecodeError"

    async def test_update_unknown_id_dead_lettered(
        self, kafka_config, processor, mock_producer, make_record, new_event_payload
    ):
        payload = {**new_event_payload, "libraryEventId": 404, "libraryEventType": "UPDATE"}

        outcome = await processor.process(make_record(payload))

        assert outcome == ProcessingOutcome.DEAD_LETTERED
        assert _published_topics(mock_producer) == [kafka_config.dlq_topic]
        assert mock_producer.send.call_args.kwargs["headers"]["errorClass"] == "IntegrityError"

    async def test_replayed_update_leaves_state_unchanged(
        self, processor, repository, make_record, new_event_payload
    ):
        await processor.process(make_record(new_event_payload))
        update = {
            "libraryEventId": 1,
            "libraryEventType": "UPDATE",
            "book": {"bookId": 123, "bookName": "Second Edition", "bookAuthor": "Dilip"},
        }

        assert await processor.process(make_record(update, offset=1)) == ProcessingOutcome.PERSISTED
        after_first = await repository.find_by_id(1)
        assert await processor.process(make_record(update, offset=2)) == ProcessingOutcome.PERSISTED
        after_replay = await repository.find_by_id(1)

        assert after_replay == after_first
        assert after_replay.book.book_name == "Second Edition"
        assert await repository.count() == 1

    async def test_transient_failure_requeued(
        self, kafka_config, retry_handler, mock_producer, make_record, new_event_payload
    ):
        repository = AsyncMock()
        repository.upsert.side_effect = TransientStoreError("database is locked")
        processor = LibraryEventProcessor(repository, retry_handler)

        outcome = await processor.process(make_record(new_event_payload))

        assert outcome == ProcessingOutcome.REQUEUED
        assert _published_topics(mock_producer) == [kafka_config.retry_topic]
        assert mock_producer.send.call_args.kwargs["headers"]["retryCount"] == "1"

    async def test_unclassified_failure_requeued(
        self, kafka_config, retry_handler, mock_producer, make_record, new_event_payload
    ):
        repository = AsyncMock()
        repository.upsert.side_effect = RuntimeError("something odd")
        processor = LibraryEventProcessor(repository, retry_handler)

        outcome = await processor.process(make_record(new_event_payload))

        assert outcome == ProcessingOutcome.REQUEUED
        assert _published_topics(mock_producer) == [kafka_config.retry_topic]

    async def test_retry_count_progression_until_dead_letter(
        self, kafka_config, retry_handler, mock_producer, make_record, new_event_payload
    ):
        """A persistently failing create is retried max_retries times, then dead-lettered."""
        repository = AsyncMock()
        repository.upsert.side_effect = TransientStoreError("database is locked")
        processor = LibraryEventProcessor(repository, retry_handler)

        outcomes = []
        headers = {}
        for offset in range(4):
            record = make_record(
                new_event_payload,
                topic=kafka_config.retry_topic if offset else kafka_config.library_events_topic,
                offset=offset,
                headers=headers,
            )
            outcomes.append(await processor.process(record))
            headers = mock_producer.send.call_args.kwargs["headers"]

        assert outcomes == [
            ProcessingOutcome.REQUEUED,
            ProcessingOutcome.REQUEUED,
            ProcessingOutcome.REQUEUED,
            ProcessingOutcome.DEAD_LETTERED,
        ]
        calls = mock_producer.send.call_args_list
        assert [c.kwargs["topic"] for c in calls] == [
            kafka_config.retry_topic,
            kafka_config.retry_topic,
            kafka_config.retry_topic,
            kafka_config.dlq_topic,
        ]
        assert [c.kwargs["headers"]["retryCount"] for c in calls] == ["1", "2", "3", "3"]
        assert calls[-1].kwargs["headers"]["errorClass"] == "TransientStoreError"

    async def test_retry_record_persisted_after_recovery(
        self, kafka_config, processor, repository, mock_producer, make_record, new_event_payload
    ):
        record = make_record(
            new_event_payload,
            topic=kafka_config.retry_topic,
            headers={"retryCount": "2"},
        )

        assert await processor.process(record) == ProcessingOutcome.PERSISTED
        assert await repository.count() == 1
        mock_producer.send.assert_not_awaited()

    async def test_routing_publish_failure_propagates(
        self, retry_handler, mock_producer, make_record, new_event_payload
    ):
        repository = AsyncMock()
        repository.upsert.side_effect = TransientStoreError("database is locked")
        mock_producer.send.side_effect = ConnectionError("broker down")
        processor = LibraryEventProcessor(repository, retry_handler)

        with pytest.raises(ConnectionError):
            await processor.process(make_record(new_event_payload))


@pytest.mark.asyncio
class TestConcurrentPartitions:
    """Partitions of one batch share a single file-backed store."""

    async def test_new_events_on_every_partition_persisted(
        self, tmp_path, retry_handler, mock_producer, make_record, new_event_payload
    ):
        repository = SqliteLibraryEventRepository(tmp_path / "library_events.db")
        processor = LibraryEventProcessor(repository, retry_handler)

        try:
            outcomes = await asyncio.gather(
                *(
                    processor.process(make_record(new_event_payload, partition=p))
                    for p in range(4)
                )
            )
            stored = await repository.count()
        finally:
            await repository.close()

        assert outcomes == [ProcessingOutcome.PERSISTED] * 4
        assert stored == 4
        mock_producer.send.assert_not_awaited()

    async def test_mixed_new_and_update_across_partitions(
        self, tmp_path, retry_handler, mock_producer, make_record, new_event_payload
    ):
        repository = SqliteLibraryEventRepository(tmp_path / "library_events.db")
        processor = LibraryEventProcessor(repository, retry_handler)
        update = {**new_event_payload, "libraryEventId": 1, "libraryEventType": "UPDATE"}
        update["book"] = {**new_event_payload["book"], "bookName": "Second Edition"}

        try:
            await processor.process(make_record(new_event_payload))
            outcomes = await asyncio.gather(
                processor.process(make_record(update, partition=1, offset=1)),
                processor.process(make_record(new_event_payload, partition=2, offset=1)),
                processor.process(make_record(update, partition=3, offset=1)),
            )
            updated = await repository.find_by_id(1)
            stored = await repository.count()
        finally:
            await repository.close()

        assert outcomes == [ProcessingOutcome.PERSISTED] * 3
        assert updated.book.book_name == "Second Edition"
        assert stored == 2
        mock_producer.send.assert_not_awaited()
