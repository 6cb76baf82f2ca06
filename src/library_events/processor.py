"""
Library event processor.

Drives one record through decode, validation and persistence. Any failure
along the way is classified and handed to the RetryHandler, so process()
only raises when the routing publish itself fails.
"""

import logging
import time
from enum import Enum

from aiokafka.structs import ConsumerRecord

from core.errors import (
    PipelineError,
    ValidationError,
    wrap_exception,
)
from core.logging import get_logger, log_exception, log_with_context
from library_events.metrics import (
    record_event_persisted,
    record_processing_error,
    record_processing_outcome,
)
from library_events.retry import (
    FailureClassification,
    RetryHandler,
    RoutingAction,
    classify_failure,
    get_retry_count,
)
from library_events.schemas import (
    LibraryEvent,
    LibraryEventType,
    PersistedLibraryEvent,
    decode_library_event,
)
from library_events.storage import LibraryEventRepository

logger = get_logger(__name__)


class ProcessingOutcome(Enum):
    """Terminal state of a processed record."""

    PERSISTED = "persisted"
    REQUEUED = "requeued"
    DEAD_LETTERED = "dead_lettered"


def validate_library_event(event: LibraryEvent) -> None:
    """
    Check the id/type pairing of a decoded event.

    Raises:
        ValidationError: NEW carrying an id, or UPDATE without one
    """
    if event.library_event_type == LibraryEventType.NEW:
        if event.library_event_id is not None:
            raise ValidationError(
                "NEW library event must not carry a libraryEventId",
                context={"library_event_id": event.library_event_id},
            )
    elif event.library_event_type == LibraryEventType.UPDATE:
        if event.library_event_id is None:
            raise ValidationError("Please pass the libraryEventId")


class LibraryEventProcessor:
    """
    Processes library event records from the main and retry topics.

    Usage:
        >>> processor = LibraryEventProcessor(repository, retry_handler)
        >>> outcome = await processor.process(record)
    """

    def __init__(
        self,
        repository: LibraryEventRepository,
        retry_handler: RetryHandler,
    ):
        self.repository = repository
        self.retry_handler = retry_handler

    async def process(self, record: ConsumerRecord) -> ProcessingOutcome:
        """
        Process one record to a terminal state.

        Args:
            record: Record consumed from the main or retry topic

        Returns:
            PERSISTED on success, otherwise REQUEUED or DEAD_LETTERED
            depending on where the failure was routed

        Raises:
            Exception: Only if publishing to the retry topic or DLQ fails
        """
        retry_count = get_retry_count(record.headers)
        start_time = time.perf_counter()

        try:
            persisted = await self._persist(record)
        except Exception as e:
            return await self._handle_failure(record, retry_count, e)

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        record_event_persisted(persisted.library_event_type.value)
        record_processing_outcome(record.topic, ProcessingOutcome.PERSISTED.value)
        log_with_context(
            logger,
            logging.INFO,
            "Library event persisted",
            library_event_id=persisted.library_event_id,
            library_event_type=persisted.library_event_type.value,
            book_id=persisted.book.book_id,
            retry_count=retry_count,
            duration_ms=duration_ms,
        )
        return ProcessingOutcome.PERSISTED

    async def _persist(self, record: ConsumerRecord) -> PersistedLibraryEvent:
        event = decode_library_event(record.value)
        log_with_context(
            logger,
            logging.DEBUG,
            "Library event decoded",
            library_event_id=event.library_event_id,
            library_event_type=event.library_event_type.value,
        )
        validate_library_event(event)
        return await self.repository.upsert(event)

    async def _handle_failure(
        self,
        record: ConsumerRecord,
        retry_count: int,
        error: Exception,
    ) -> ProcessingOutcome:
        if not isinstance(error, PipelineError):
            error = wrap_exception(error)

        classification = classify_failure(error)
        record_processing_error(record.topic, error.category.value)
        log_exception(
            logger,
            error,
            "Library event processing failed",
            level=logging.WARNING,
            include_traceback=classification == FailureClassification.RETRYABLE,
            classification=classification.value,
            retry_count=retry_count,
        )

        action = await self.retry_handler.route(record, classification, retry_count, error)

        if action == RoutingAction.RETRY:
            outcome = ProcessingOutcome.REQUEUED
        else:
            outcome = ProcessingOutcome.DEAD_LETTERED
        record_processing_outcome(record.topic, outcome.value)
        return outcome


__all__ = [
    "LibraryEventProcessor",
    "ProcessingOutcome",
    "validate_library_event",
]
