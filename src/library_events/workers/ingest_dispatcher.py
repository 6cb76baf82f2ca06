"""
Ingest dispatcher - consumes library events from the main topic.

Consumer group: library-events-listener-group
Input topic: library-events
Failure output: library-events.RETRY or library-events.DLT
"""

from typing import Optional

from library_events.config import KafkaConfig
from library_events.retry import RetryHandler
from library_events.storage import LibraryEventRepository
from library_events.workers.base import LibraryEventDispatcher


class IngestDispatcher(LibraryEventDispatcher):
    """
    Dispatcher for the main library events topic.

    Usage:
        >>> config = KafkaConfig.from_env()
        >>> dispatcher = IngestDispatcher(config)
        >>> await dispatcher.start()
        >>> # Runs until stopped
        >>> await dispatcher.stop()
    """

    def __init__(
        self,
        config: KafkaConfig,
        repository: Optional[LibraryEventRepository] = None,
        retry_handler: Optional[RetryHandler] = None,
        max_batches: Optional[int] = None,
    ):
        super().__init__(
            config,
            topic=config.library_events_topic,
            group_id=config.consumer_group,
            repository=repository,
            retry_handler=retry_handler,
            max_batches=max_batches,
        )
