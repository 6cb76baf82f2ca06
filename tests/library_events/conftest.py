"""
Shared fixtures for library events unit tests.

Provides:
- Test Kafka configuration (no broker required)
- ConsumerRecord factory for main and retry topic records
- In-memory SQLite repository
"""

import json
from datetime import datetime, timezone
from typing import Dict, Optional

import pytest
from aiokafka.structs import ConsumerRecord

from library_events.config import KafkaConfig
from library_events.storage import SqliteLibraryEventRepository


@pytest.fixture
def kafka_config() -> KafkaConfig:
    """Create test Kafka configuration."""
    return KafkaConfig(
        bootstrap_servers="localhost:9092",
        library_events_topic="test.library-events",
        retry_topic="test.library-events.RETRY",
        dlq_topic="test.library-events.DLT",
        consumer_group="test-library-events-listener-group",
        retry_consumer_group="test-retry-listener-group",
        max_retries=3,
        db_path=":memory:",
    )


@pytest.fixture
def new_event_payload() -> dict:
    """NEW library event as it arrives on the wire."""
    return {
        "libraryEventId": None,
        "libraryEventType": "NEW",
        "book": {
            "bookId": 123,
            "bookName": "Kafka Using Spring Boot",
            "bookAuthor": "Dilip",
        },
    }


@pytest.fixture
def make_record():
    """Factory building ConsumerRecords the way aiokafka delivers them."""

    def _make(
        value,
        topic: str = "test.library-events",
        partition: int = 0,
        offset: int = 0,
        key: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> ConsumerRecord:
        if isinstance(value, dict):
            value = json.dumps(value).encode("utf-8")
        header_list = [(k, v.encode("utf-8")) for k, v in (headers or {}).items()]
        return ConsumerRecord(
            topic=topic,
            partition=partition,
            offset=offset,
            timestamp=int(datetime.now(timezone.utc).timestamp() * 1000),
            timestamp_type=0,
            key=key,
            value=value,
            headers=header_list,
            checksum=None,
            serialized_key_size=len(key) if key else -1,
            serialized_value_size=len(value) if value else -1,
        )

    return _make


@pytest.fixture
async def repository():
    """In-memory SQLite repository, closed after the test."""
    repo = SqliteLibraryEventRepository(":memory:")
    yield repo
    await repo.close()
