"""
Kafka producer for retry and dead-letter publishing.

Provides async Kafka producer functionality with:
- SASL_PLAIN authentication when configured
- Raw byte values so republished payloads stay unchanged
- Header support for retry metadata
"""

import logging
from typing import Dict, Optional, Union

from aiokafka import AIOKafkaProducer
from aiokafka.structs import RecordMetadata
from pydantic import BaseModel

from library_events.config import KafkaConfig
from library_events.metrics import (
    record_message_produced,
    record_producer_error,
    update_connection_status,
)

logger = logging.getLogger(__name__)


class BaseKafkaProducer:
    """
    Async Kafka producer with authentication.

    Usage:
        >>> config = KafkaConfig.from_env()
        >>> producer = BaseKafkaProducer(config)
        >>> await producer.start()
        >>> try:
        ...     metadata = await producer.send(
        ...         topic="library-events.RETRY",
        ...         key=record.key,
        ...         value=record.value,
        ...         headers={"retryCount": "1"},
        ...     )
        ... finally:
        ...     await producer.stop()
    """

    def __init__(self, config: KafkaConfig):
        """
        Initialize Kafka producer.

        Args:
            config: Kafka configuration
        """
        self.config = config
        self._producer: Optional[AIOKafkaProducer] = None
        self._started = False

        logger.info(
            "Initialized Kafka producer",
            extra={
                "bootstrap_servers": config.bootstrap_servers,
                "security_protocol": config.security_protocol,
            },
        )

    async def start(self) -> None:
        """
        Start the Kafka producer and establish connection.

        Raises:
            Exception: If producer fails to start or connect
        """
        if self._started:
            logger.warning("Producer already started, ignoring duplicate start call")
            return

        logger.info("Starting Kafka producer")

        producer_config = {
            "bootstrap_servers": self.config.bootstrap_servers,
            "acks": self.config.acks,
            "request_timeout_ms": self.config.request_timeout_ms,
        }

        if self.config.security_protocol != "PLAINTEXT":
            producer_config["security_protocol"] = self.config.security_protocol
            producer_config["sasl_mechanism"] = self.config.sasl_mechanism
            if self.config.sasl_mechanism == "PLAIN":
                producer_config["sasl_plain_username"] = self.config.sasl_plain_username
                producer_config["sasl_plain_password"] = self.config.sasl_plain_password

        self._producer = AIOKafkaProducer(**producer_config)

        await self._producer.start()
        self._started = True

        update_connection_status("producer", connected=True)

        logger.info(
            "Kafka producer started successfully",
            extra={
                "bootstrap_servers": self.config.bootstrap_servers,
            },
        )

    async def stop(self) -> None:
        """
        Stop the Kafka producer and cleanup resources.

        Flushes any pending messages and closes the connection gracefully.
        Safe to call multiple times.
        """
        if not self._started or self._producer is None:
            logger.debug("Producer not started or already stopped")
            return

        logger.info("Stopping Kafka producer")

        try:
            await self._producer.flush()
            await self._producer.stop()
            logger.info("Kafka producer stopped successfully")
        except Exception as e:
            logger.error(
                "Error stopping Kafka producer",
                extra={"error": str(e)},
                exc_info=True,
            )
            raise
        finally:
            update_connection_status("producer", connected=False)
            self._producer = None
            self._started = False

    async def send(
        self,
        topic: str,
        key: Optional[Union[str, bytes]],
        value: Union[BaseModel, bytes],
        headers: Optional[Dict[str, str]] = None,
    ) -> RecordMetadata:
        """
        Send a single message to a Kafka topic and wait for the broker ack.

        Args:
            topic: Kafka topic name
            key: Message key (used for partitioning); None for keyless messages
            value: Raw value bytes, or a Pydantic model serialized as JSON
            headers: Optional key-value pairs for message headers

        Returns:
            RecordMetadata with topic, partition, offset information

        Raises:
            RuntimeError: If producer not started
            Exception: If send operation fails
        """
        if not self._started or self._producer is None:
            raise RuntimeError("Producer not started. Call start() first.")

        if isinstance(value, BaseModel):
            value_bytes = value.model_dump_json(by_alias=True).encode("utf-8")
        else:
            value_bytes = value

        key_bytes = key.encode("utf-8") if isinstance(key, str) else key

        headers_list = None
        if headers:
            headers_list = [(k, v.encode("utf-8")) for k, v in headers.items()]

        logger.debug(
            "Sending message to Kafka",
            extra={
                "topic": topic,
                "headers": headers,
            },
        )

        try:
            metadata = await self._producer.send_and_wait(
                topic,
                key=key_bytes,
                value=value_bytes,
                headers=headers_list,
            )
        except Exception as e:
            record_message_produced(topic, success=False)
            record_producer_error(topic, type(e).__name__)
            logger.error(
                "Failed to send message",
                extra={
                    "topic": topic,
                    "error": str(e),
                },
                exc_info=True,
            )
            raise

        record_message_produced(topic, success=True)
        logger.debug(
            "Message sent successfully",
            extra={
                "topic": metadata.topic,
                "partition": metadata.partition,
                "offset": metadata.offset,
            },
        )
        return metadata

    async def flush(self) -> None:
        """
        Flush any pending messages to Kafka.

        Raises:
            RuntimeError: If producer not started
        """
        if not self._started or self._producer is None:
            raise RuntimeError("Producer not started. Call start() first.")

        logger.debug("Flushing producer")
        await self._producer.flush()

    @property
    def is_started(self) -> bool:
        """Check if producer is started and ready to send messages."""
        return self._started and self._producer is not None


__all__ = [
    "BaseKafkaProducer",
]
