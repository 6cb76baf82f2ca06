"""
Retry dispatcher - reprocesses library events from the retry topic.

Runs the same processing as the ingest dispatcher. Only started when
RETRY_LISTENER_STARTUP is true, unless forced on.

Consumer group: retry-listener-group
Input topic: library-events.RETRY
Failure output: library-events.RETRY or library-events.DLT
"""

import logging
from typing import Optional

from aiokafka.structs import ConsumerRecord

from core.logging import log_with_context
from library_events.config import KafkaConfig
from library_events.processor import ProcessingOutcome
from library_events.retry import RetryHandler
from library_events.storage import LibraryEventRepository
from library_events.workers.base import LibraryEventDispatcher

logger = logging.getLogger(__name__)


class RetryDispatcher(LibraryEventDispatcher):
    """
    Dispatcher for the retry topic.

    Args:
        enabled: Overrides config.retry_listener_startup when given. A
            disabled dispatcher returns from start() without subscribing.
    """

    def __init__(
        self,
        config: KafkaConfig,
        repository: Optional[LibraryEventRepository] = None,
        retry_handler: Optional[RetryHandler] = None,
        enabled: Optional[bool] = None,
        max_batches: Optional[int] = None,
    ):
        super().__init__(
            config,
            topic=config.retry_topic,
            group_id=config.retry_consumer_group,
            repository=repository,
            retry_handler=retry_handler,
            max_batches=max_batches,
        )
        self.enabled = config.retry_listener_startup if enabled is None else enabled

    async def start(self) -> None:
        if not self.enabled:
            logger.info(
                "Retry listener disabled, not subscribing",
                extra={"topic": self.topic, "group_id": self.group_id},
            )
            return
        await super().start()

    async def _handle_message(self, record: ConsumerRecord) -> ProcessingOutcome:
        log_with_context(
            logger,
            logging.INFO,
            "Processing retry record",
            headers={
                key: value.decode("utf-8", errors="replace") if value else None
                for key, value in record.headers or ()
            },
        )
        return await super()._handle_message(record)
