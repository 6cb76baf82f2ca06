"""
Retry handler for library event processing failures.

Routes a failed record to the retry topic or the dead-letter topic
based on its retry count and the classification of the failure.
Republished records keep their original key and value bytes.
"""

import logging
from typing import Optional

from aiokafka.structs import ConsumerRecord

from library_events.config import KafkaConfig
from library_events.metrics import record_dlq_message, record_retry_message
from library_events.producer import BaseKafkaProducer
from library_events.retry.utils import (
    FailureClassification,
    RoutingAction,
    create_dlq_headers,
    create_retry_headers,
    log_retry_decision,
    should_send_to_dlq,
)

logger = logging.getLogger(__name__)


class RetryHandler:
    """
    Handles retry and dead-letter routing via Kafka topics.

    Every call to route() publishes exactly one message: to the retry
    topic with retryCount incremented, or to the dead-letter topic with
    the final retry count and error details.

    Usage:
        >>> handler = RetryHandler(config)
        >>> await handler.start()
        >>> action = await handler.route(record, classification, retry_count, error)
        >>> await handler.stop()
    """

    def __init__(
        self,
        config: KafkaConfig,
        producer: Optional[BaseKafkaProducer] = None,
    ):
        """
        Initialize retry handler.

        Args:
            config: Kafka configuration with topics and retry limit
            producer: Optional producer to publish with. When omitted the
                handler creates and owns its own.
        """
        self.config = config
        self.retry_topic = config.retry_topic
        self.dlq_topic = config.dlq_topic
        self._max_retries = config.max_retries

        self._producer = producer
        self._owns_producer = producer is None

        logger.info(
            "Initialized RetryHandler",
            extra={
                "retry_topic": self.retry_topic,
                "dlq_topic": self.dlq_topic,
                "max_retries": self._max_retries,
            },
        )

    async def start(self) -> None:
        """Create and start the routing producer if this handler owns it."""
        if self._producer is None:
            self._producer = BaseKafkaProducer(self.config)
        if self._owns_producer:
            await self._producer.start()
        logger.info("RetryHandler producer started")

    async def stop(self) -> None:
        """Stop the routing producer if this handler owns it."""
        if self._producer is not None and self._owns_producer:
            await self._producer.stop()
            self._producer = None
        logger.info("RetryHandler producer stopped")

    async def route(
        self,
        record: ConsumerRecord,
        classification: FailureClassification,
        retry_count: int,
        error: Exception,
    ) -> RoutingAction:
        """
        Route a failed record to the retry topic or DLQ.

        Routing:
        - NON_RETRYABLE: DLQ immediately, retry count unchanged
        - RETRYABLE below max_retries: retry topic with retry count + 1
        - RETRYABLE at or above max_retries: DLQ, retry count unchanged

        Args:
            record: Inbound record that failed
            classification: Routing class of the failure
            retry_count: Retries already performed for this record
            error: Exception that caused the failure

        Returns:
            The routing action taken

        Raises:
            RuntimeError: If the handler has not been started
            Exception: If the publish fails; the caller must not commit
        """
        if self._producer is None:
            raise RuntimeError("RetryHandler not started. Call start() first.")

        send_to_dlq, dlq_reason = should_send_to_dlq(
            classification, retry_count, self._max_retries
        )

        if send_to_dlq:
            action = "dlq_permanent" if dlq_reason == "permanent" else "dlq_exhausted"
            log_retry_decision(action, retry_count, classification, error, self._max_retries)
            await self._send_to_dlq(record, retry_count, error, dlq_reason)
            return RoutingAction.DLQ

        log_retry_decision("retry", retry_count, classification, error, self._max_retries)
        await self._send_to_retry_topic(record, retry_count)
        return RoutingAction.RETRY

    async def _send_to_retry_topic(
        self,
        record: ConsumerRecord,
        retry_count: int,
    ) -> None:
        next_retry_count = retry_count + 1

        await self._producer.send(
            topic=self.retry_topic,
            key=record.key,
            value=record.value,
            headers=create_retry_headers(
                retry_count=next_retry_count,
                original_headers=record.headers,
            ),
        )

        record_retry_message(record.topic)
        logger.info(
            "Message sent to retry topic",
            extra={
                "retry_topic": self.retry_topic,
                "retry_count": next_retry_count,
            },
        )

    async def _send_to_dlq(
        self,
        record: ConsumerRecord,
        retry_count: int,
        error: Exception,
        reason: str,
    ) -> None:
        await self._producer.send(
            topic=self.dlq_topic,
            key=record.key,
            value=record.value,
            headers=create_dlq_headers(
                retry_count=retry_count,
                error=error,
                original_headers=record.headers,
            ),
        )

        record_dlq_message(record.topic, reason)
        logger.warning(
            "Message sent to DLQ",
            extra={
                "dlq_topic": self.dlq_topic,
                "dlq_reason": reason,
                "retry_count": retry_count,
                "error_class": type(error).__name__,
            },
        )
