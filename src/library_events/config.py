"""Library events consumer configuration from environment variables."""

import os
from dataclasses import dataclass


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes")


@dataclass
class KafkaConfig:
    """Kafka connection, topic and routing configuration.

    Load from environment using KafkaConfig.from_env().
    All timing values in milliseconds unless otherwise noted.
    """

    # Connection
    bootstrap_servers: str
    security_protocol: str = "PLAINTEXT"
    sasl_mechanism: str = "PLAIN"

    # SASL_PLAIN credentials
    sasl_plain_username: str = ""
    sasl_plain_password: str = ""

    # Consumer defaults
    auto_offset_reset: str = "earliest"
    enable_auto_commit: bool = False
    max_poll_records: int = 100
    max_poll_interval_ms: int = 300000  # 5 minutes
    session_timeout_ms: int = 30000
    request_timeout_ms: int = 40000

    # Producer defaults
    acks: str = "all"

    # Topics
    library_events_topic: str = "library-events"
    retry_topic: str = "library-events.RETRY"
    dlq_topic: str = "library-events.DLT"

    # Consumer groups
    consumer_group: str = "library-events-listener-group"
    retry_consumer_group: str = "retry-listener-group"

    # Retry routing
    max_retries: int = 3
    retry_listener_startup: bool = False

    # Storage
    db_path: str = "library_events.db"

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    @classmethod
    def from_env(cls) -> "KafkaConfig":
        """Load configuration from environment variables.

        Required environment variables:
            KAFKA_BOOTSTRAP_SERVERS: Kafka broker addresses

        Optional environment variables (with defaults):
            KAFKA_SECURITY_PROTOCOL: PLAINTEXT
            KAFKA_SASL_MECHANISM: PLAIN
            KAFKA_SASL_PLAIN_USERNAME / KAFKA_SASL_PLAIN_PASSWORD: empty
            KAFKA_MAX_POLL_RECORDS: 100
            KAFKA_SESSION_TIMEOUT_MS: 30000
            KAFKA_LIBRARY_EVENTS_TOPIC: library-events
            KAFKA_RETRY_TOPIC: library-events.RETRY
            KAFKA_DLQ_TOPIC: library-events.DLT
            KAFKA_CONSUMER_GROUP: library-events-listener-group
            KAFKA_RETRY_CONSUMER_GROUP: retry-listener-group
            MAX_RETRIES: 3
            RETRY_LISTENER_STARTUP: false
            LIBRARY_EVENTS_DB_PATH: library_events.db

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        bootstrap_servers = os.getenv("KAFKA_BOOTSTRAP_SERVERS")
        if not bootstrap_servers:
            raise ValueError("KAFKA_BOOTSTRAP_SERVERS environment variable is required")

        return cls(
            # Connection
            bootstrap_servers=bootstrap_servers,
            security_protocol=os.getenv("KAFKA_SECURITY_PROTOCOL", "PLAINTEXT"),
            sasl_mechanism=os.getenv("KAFKA_SASL_MECHANISM", "PLAIN"),
            sasl_plain_username=os.getenv("KAFKA_SASL_PLAIN_USERNAME", ""),
            sasl_plain_password=os.getenv("KAFKA_SASL_PLAIN_PASSWORD", ""),

            # Consumer defaults
            max_poll_records=int(os.getenv("KAFKA_MAX_POLL_RECORDS", "100")),
            session_timeout_ms=int(os.getenv("KAFKA_SESSION_TIMEOUT_MS", "30000")),

            # Topics
            library_events_topic=os.getenv("KAFKA_LIBRARY_EVENTS_TOPIC", "library-events"),
            retry_topic=os.getenv("KAFKA_RETRY_TOPIC", "library-events.RETRY"),
            dlq_topic=os.getenv("KAFKA_DLQ_TOPIC", "library-events.DLT"),

            # Consumer groups
            consumer_group=os.getenv(
                "KAFKA_CONSUMER_GROUP", "library-events-listener-group"
            ),
            retry_consumer_group=os.getenv(
                "KAFKA_RETRY_CONSUMER_GROUP", "retry-listener-group"
            ),

            # Retry routing
            max_retries=int(os.getenv("MAX_RETRIES", "3")),
            retry_listener_startup=_env_bool("RETRY_LISTENER_STARTUP", "false"),

            # Storage
            db_path=os.getenv("LIBRARY_EVENTS_DB_PATH", "library_events.db"),
        )
