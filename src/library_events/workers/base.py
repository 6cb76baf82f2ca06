"""
Shared lifecycle for library event dispatchers.

A dispatcher subscribes one topic for one consumer group and feeds every
record to a LibraryEventProcessor. It owns its consumer, its repository
connection and the producer inside its RetryHandler.
"""

import logging
from typing import Optional

from aiokafka.structs import ConsumerRecord

from library_events.config import KafkaConfig
from library_events.consumer import BaseKafkaConsumer
from library_events.processor import LibraryEventProcessor, ProcessingOutcome
from library_events.retry import RetryHandler
from library_events.storage import LibraryEventRepository, SqliteLibraryEventRepository

logger = logging.getLogger(__name__)


class LibraryEventDispatcher:
    """
    Base dispatcher binding a topic and consumer group to the processor.

    Subclasses set the topic and group they consume.
    """

    def __init__(
        self,
        config: KafkaConfig,
        topic: str,
        group_id: str,
        repository: Optional[LibraryEventRepository] = None,
        retry_handler: Optional[RetryHandler] = None,
        max_batches: Optional[int] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            config: Kafka configuration
            topic: Topic to consume
            group_id: Consumer group to join
            repository: Optional store; defaults to SQLite at config.db_path
            retry_handler: Optional router; defaults to one with its own producer
            max_batches: Optional batch limit passed to the consumer (testing)
        """
        self.config = config
        self.topic = topic
        self.group_id = group_id
        self.max_batches = max_batches

        self.repository = repository or SqliteLibraryEventRepository(config.db_path)
        self.retry_handler = retry_handler or RetryHandler(config)
        self.processor = LibraryEventProcessor(self.repository, self.retry_handler)
        self.consumer: Optional[BaseKafkaConsumer] = None

        logger.info(
            f"Initialized {type(self).__name__}",
            extra={
                "topic": topic,
                "group_id": group_id,
            },
        )

    async def start(self) -> None:
        """
        Start the dispatcher and consume until stopped.

        Raises:
            Exception: If the producer or consumer fails to start
        """
        logger.info(f"Starting {type(self).__name__}", extra={"topic": self.topic})

        # Producer first so failures can be routed from the first record
        await self.retry_handler.start()

        self.consumer = BaseKafkaConsumer(
            config=self.config,
            topics=[self.topic],
            group_id=self.group_id,
            message_handler=self._handle_message,
            max_batches=self.max_batches,
        )

        # Blocks until stopped
        await self.consumer.start()

    async def stop(self) -> None:
        """
        Stop the dispatcher.

        The consumer finishes its in-flight records before leaving the
        group; the routing producer and store connection close after it.
        """
        logger.info(f"Stopping {type(self).__name__}")

        if self.consumer:
            await self.consumer.stop()

        await self.retry_handler.stop()
        await self.repository.close()

        logger.info(f"{type(self).__name__} stopped successfully")

    async def _handle_message(self, record: ConsumerRecord) -> ProcessingOutcome:
        return await self.processor.process(record)

    @property
    def is_running(self) -> bool:
        return self.consumer is not None and self.consumer.is_running
