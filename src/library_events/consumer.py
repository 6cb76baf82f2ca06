"""
Kafka consumer with per-partition ordered processing.

Provides async Kafka consumer functionality with:
- Manual offset commit for at-least-once processing
- Concurrent processing across partitions, strict order within one
- Rewind of a partition when its handler or commit fails, so the record is redelivered
- SASL_PLAIN authentication when configured
- Graceful shutdown that lets in-flight messages finish
- Message handler pattern for processing logic
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional

from aiokafka import AIOKafkaConsumer
from aiokafka.structs import ConsumerRecord, TopicPartition

from core.logging import KafkaLogContext, get_logger, log_exception, log_with_context
from library_events.config import KafkaConfig
from library_events.metrics import (
    message_processing_duration_seconds,
    record_message_consumed,
    update_assigned_partitions,
    update_connection_status,
)

logger = get_logger(__name__)

MessageHandler = Callable[[ConsumerRecord], Awaitable[object]]


class BaseKafkaConsumer:
    """
    Async Kafka consumer subscribing a handler to topics for a consumer group.

    Each fetched batch is split by partition. Partitions are processed
    concurrently as asyncio tasks; records within a partition are handled
    one at a time in offset order. A record's offset is committed only after
    the handler returns. If the handler or the commit fails, the partition is rewound to
    that record and the remainder of its batch is left for redelivery.

    Usage:
        >>> config = KafkaConfig.from_env()
        >>> async def handle_message(record: ConsumerRecord):
        ...     await processor.process(record)
        >>>
        >>> consumer = BaseKafkaConsumer(
        ...     config=config,
        ...     topics=["library-events"],
        ...     group_id="library-events-listener-group",
        ...     message_handler=handle_message,
        ... )
        >>> await consumer.start()
        >>> # Consumer runs until stopped
        >>> await consumer.stop()
    """

    def __init__(
        self,
        config: KafkaConfig,
        topics: List[str],
        group_id: str,
        message_handler: MessageHandler,
        max_batches: Optional[int] = None,
    ):
        """
        Initialize Kafka consumer.

        Args:
            config: Kafka configuration
            topics: List of topics to subscribe to
            group_id: Consumer group ID for offset management
            message_handler: Async callback function to process messages
            max_batches: Optional limit on number of batches to process (None = unlimited).
                        Useful for testing. A batch is one getmany() poll result.
        """
        if not topics:
            raise ValueError("At least one topic must be specified")

        self.config = config
        self.topics = topics
        self.group_id = group_id
        self.message_handler = message_handler
        self._consumer: Optional[AIOKafkaConsumer] = None
        self._running = False
        self._idle = asyncio.Event()
        self._idle.set()

        self.max_batches = max_batches
        self._batch_count = 0

        log_with_context(
            logger,
            logging.INFO,
            "Initialized Kafka consumer",
            topics=topics,
            group_id=group_id,
            bootstrap_servers=config.bootstrap_servers,
        )

    def _build_consumer_config(self) -> dict:
        consumer_config = {
            "bootstrap_servers": self.config.bootstrap_servers,
            "group_id": self.group_id,
            "enable_auto_commit": self.config.enable_auto_commit,
            "auto_offset_reset": self.config.auto_offset_reset,
            "max_poll_records": self.config.max_poll_records,
            "max_poll_interval_ms": self.config.max_poll_interval_ms,
            "session_timeout_ms": self.config.session_timeout_ms,
            "request_timeout_ms": self.config.request_timeout_ms,
        }

        if self.config.security_protocol != "PLAINTEXT":
            consumer_config["security_protocol"] = self.config.security_protocol
            consumer_config["sasl_mechanism"] = self.config.sasl_mechanism
            if self.config.sasl_mechanism == "PLAIN":
                consumer_config["sasl_plain_username"] = self.config.sasl_plain_username
                consumer_config["sasl_plain_password"] = self.config.sasl_plain_password

        return consumer_config

    async def start(self) -> None:
        """
        Start the Kafka consumer and begin processing messages.

        Creates the underlying aiokafka consumer, connects to the cluster,
        and runs the consumption loop until stop() is called.

        Raises:
            Exception: If consumer fails to start or connect
        """
        if self._running:
            logger.warning("Consumer already running, ignoring duplicate start call")
            return

        log_with_context(
            logger,
            logging.INFO,
            "Starting Kafka consumer",
            topics=self.topics,
            group_id=self.group_id,
        )

        self._consumer = AIOKafkaConsumer(*self.topics, **self._build_consumer_config())

        await self._consumer.start()
        self._running = True

        update_connection_status("consumer", connected=True)

        log_with_context(
            logger,
            logging.INFO,
            "Kafka consumer started successfully",
            topics=self.topics,
            group_id=self.group_id,
        )

        try:
            await self._consume_loop()
        except asyncio.CancelledError:
            logger.info("Consumer loop cancelled, shutting down")
            raise
        except Exception as e:
            log_exception(logger, e, "Consumer loop terminated with error")
            raise
        finally:
            self._running = False

    async def stop(self) -> None:
        """
        Stop the Kafka consumer and cleanup resources.

        Waits for the message currently being handled in each partition to
        reach a terminal state, then leaves the group. Offsets are committed
        per message as processing completes, so nothing is committed here.
        Safe to call multiple times.
        """
        if self._consumer is None:
            logger.debug("Consumer not running or already stopped")
            return

        logger.info("Stopping Kafka consumer")
        self._running = False

        try:
            await self._idle.wait()
            await self._consumer.stop()
            logger.info("Kafka consumer stopped successfully")
        except Exception as e:
            log_exception(logger, e, "Error stopping Kafka consumer")
            raise
        finally:
            update_connection_status("consumer", connected=False)
            update_assigned_partitions(self.group_id, 0)
            self._consumer = None

    async def _consume_loop(self) -> None:
        """
        Main message consumption loop.

        Fetches batches, fans them out per partition, and waits for every
        partition of the batch to finish before fetching again.

        If max_batches is set, exits after processing that many batches.
        """
        _logged_waiting_for_assignment = False
        _logged_assignment_received = False

        while self._running and self._consumer:
            try:
                if self.max_batches is not None and self._batch_count >= self.max_batches:
                    log_with_context(
                        logger,
                        logging.INFO,
                        "Reached max_batches limit, stopping consumer",
                        max_batches=self.max_batches,
                    )
                    return

                # getmany() can block through a rebalance, so wait for assignment first
                assignment = self._consumer.assignment()
                if not assignment:
                    if not _logged_waiting_for_assignment:
                        log_with_context(
                            logger,
                            logging.INFO,
                            "Waiting for partition assignment (consumer group rebalance in progress)",
                            group_id=self.group_id,
                            topics=self.topics,
                        )
                        _logged_waiting_for_assignment = True
                    await asyncio.sleep(0.5)
                    continue

                if not _logged_assignment_received:
                    log_with_context(
                        logger,
                        logging.INFO,
                        "Partition assignment received, starting message consumption",
                        group_id=self.group_id,
                        partition_count=len(assignment),
                        partitions=[f"{tp.topic}:{tp.partition}" for tp in assignment],
                    )
                    _logged_assignment_received = True
                    update_assigned_partitions(self.group_id, len(assignment))

                data = await self._consumer.getmany(timeout_ms=1000)
                if not data:
                    continue

                self._batch_count += 1
                self._idle.clear()
                try:
                    # Every partition task must finish before the next poll or stop
                    results = await asyncio.gather(
                        *(
                            self._process_partition(tp, messages)
                            for tp, messages in data.items()
                        ),
                        return_exceptions=True,
                    )
                finally:
                    self._idle.set()

                for tp, result in zip(data.keys(), results):
                    if isinstance(result, Exception):
                        log_exception(
                            logger,
                            result,
                            "Partition processing failed",
                            topic=tp.topic,
                            partition=tp.partition,
                        )

            except asyncio.CancelledError:
                logger.info("Consumption loop cancelled")
                raise
            except Exception as e:
                log_exception(logger, e, "Error in consumption loop")
                await asyncio.sleep(1)

    async def _process_partition(
        self, tp: TopicPartition, messages: List[ConsumerRecord]
    ) -> None:
        """
        Process one partition's share of a batch strictly in offset order.

        Stops at the first record whose handler raises, rewinding the
        partition so that record is fetched again on the next poll.
        """
        for message in messages:
            if not self._running:
                return

            handled = await self._process_message(message)
            if not handled:
                self._consumer.seek(tp, message.offset)
                log_with_context(
                    logger,
                    logging.WARNING,
                    "Rewound partition for redelivery",
                    topic=tp.topic,
                    partition=tp.partition,
                    offset=message.offset,
                )
                return

    async def _process_message(self, message: ConsumerRecord) -> bool:
        """
        Run the handler for one record and commit its offset on success.

        Returns:
            True if the record reached a terminal state and was committed,
            False if the handler or the offset commit failed and the record
            must be redelivered.
        """
        with KafkaLogContext(
            topic=message.topic,
            partition=message.partition,
            offset=message.offset,
            key=message.key.decode("utf-8", errors="replace") if message.key else None,
            consumer_group=self.group_id,
        ):
            start_time = time.perf_counter()
            message_size = len(message.value) if message.value else 0

            try:
                await self.message_handler(message)
            except Exception as e:
                duration = time.perf_counter() - start_time
                message_processing_duration_seconds.labels(
                    topic=message.topic, consumer_group=self.group_id
                ).observe(duration)
                record_message_consumed(
                    message.topic, self.group_id, message_size, success=False
                )
                log_exception(
                    logger,
                    e,
                    "Message handler failed - offset not committed, will redeliver",
                    level=logging.WARNING,
                    duration_ms=round(duration * 1000, 2),
                )
                return False

            duration = time.perf_counter() - start_time
            message_processing_duration_seconds.labels(
                topic=message.topic, consumer_group=self.group_id
            ).observe(duration)

            # Commit after terminal state (at-least-once semantics)
            tp = TopicPartition(message.topic, message.partition)
            try:
                await self._consumer.commit({tp: message.offset + 1})
            except Exception as e:
                log_exception(
                    logger,
                    e,
                    "Offset commit failed - record will be redelivered",
                    level=logging.WARNING,
                )
                return False

            record_message_consumed(
                message.topic, self.group_id, message_size, success=True
            )
            log_with_context(
                logger,
                logging.DEBUG,
                "Message processed and committed",
                duration_ms=round(duration * 1000, 2),
            )
            return True

    @property
    def is_running(self) -> bool:
        """Check if consumer is running and processing messages."""
        return self._running and self._consumer is not None


__all__ = [
    "BaseKafkaConsumer",
    "ConsumerRecord",
    "MessageHandler",
]
