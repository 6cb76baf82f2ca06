"""
Prometheus metrics for library events consumer monitoring.

Provides instrumentation for:
- Message production and consumption rates
- Processing outcomes and error categories
- Retry and dead-letter routing
- Processing time histograms
"""

from prometheus_client import Counter, Gauge, Histogram

# Message production metrics
messages_produced_total = Counter(
    "library_events_messages_produced_total",
    "Total number of messages produced to Kafka topics",
    ["topic", "status"],  # status: success, error
)

producer_errors_total = Counter(
    "library_events_producer_errors_total",
    "Total number of producer errors",
    ["topic", "error_type"],
)

# Message consumption metrics
messages_consumed_total = Counter(
    "library_events_messages_consumed_total",
    "Total number of messages consumed from Kafka topics",
    ["topic", "consumer_group", "status"],  # status: success, error
)

messages_consumed_bytes = Counter(
    "library_events_messages_consumed_bytes_total",
    "Total bytes of message data consumed from Kafka topics",
    ["topic", "consumer_group"],
)

# Processing outcomes
processing_outcomes_total = Counter(
    "library_events_processing_outcomes_total",
    "Terminal outcome of each processed message",
    ["topic", "outcome"],  # outcome: persisted, requeued, dead_lettered
)

processing_errors_total = Counter(
    "library_events_processing_errors_total",
    "Total number of message processing errors by category",
    ["topic", "error_category"],
)

# Routing
retry_messages_total = Counter(
    "library_events_retry_messages_total",
    "Messages republished to the retry topic",
    ["topic"],
)

dlq_messages_total = Counter(
    "library_events_dlq_messages_total",
    "Messages published to the dead-letter topic",
    ["topic", "reason"],  # reason: permanent, exhausted
)

# Persistence
events_persisted_total = Counter(
    "library_events_persisted_total",
    "Library events written to the store",
    ["event_type"],
)

# Processing time metrics
message_processing_duration_seconds = Histogram(
    "library_events_message_processing_duration_seconds",
    "Time spent processing individual messages",
    ["topic", "consumer_group"],
    buckets=(
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
        30.0,
    ),
)

# Connection health metrics
kafka_connection_status = Gauge(
    "library_events_kafka_connection_status",
    "Kafka connection status (1=connected, 0=disconnected)",
    ["component"],  # component: producer, consumer
)

consumer_assigned_partitions = Gauge(
    "library_events_consumer_assigned_partitions",
    "Number of partitions assigned to this consumer",
    ["consumer_group"],
)


def record_message_produced(topic: str, success: bool = True) -> None:
    status = "success" if success else "error"
    messages_produced_total.labels(topic=topic, status=status).inc()


def record_producer_error(topic: str, error_type: str) -> None:
    producer_errors_total.labels(topic=topic, error_type=error_type).inc()


def record_message_consumed(
    topic: str, consumer_group: str, message_bytes: int, success: bool = True
) -> None:
    status = "success" if success else "error"
    messages_consumed_total.labels(
        topic=topic, consumer_group=consumer_group, status=status
    ).inc()
    if success:
        messages_consumed_bytes.labels(
            topic=topic, consumer_group=consumer_group
        ).inc(message_bytes)


def record_processing_outcome(topic: str, outcome: str) -> None:
    processing_outcomes_total.labels(topic=topic, outcome=outcome).inc()


def record_processing_error(topic: str, error_category: str) -> None:
    processing_errors_total.labels(topic=topic, error_category=error_category).inc()


def record_retry_message(topic: str) -> None:
    retry_messages_total.labels(topic=topic).inc()


def record_dlq_message(topic: str, reason: str) -> None:
    dlq_messages_total.labels(topic=topic, reason=reason).inc()


def record_event_persisted(event_type: str) -> None:
    events_persisted_total.labels(event_type=event_type).inc()


def update_connection_status(component: str, connected: bool) -> None:
    kafka_connection_status.labels(component=component).set(1 if connected else 0)


def update_assigned_partitions(consumer_group: str, count: int) -> None:
    consumer_assigned_partitions.labels(consumer_group=consumer_group).set(count)


__all__ = [
    "messages_produced_total",
    "producer_errors_total",
    "messages_consumed_total",
    "messages_consumed_bytes",
    "processing_outcomes_total",
    "processing_errors_total",
    "retry_messages_total",
    "dlq_messages_total",
    "events_persisted_total",
    "message_processing_duration_seconds",
    "kafka_connection_status",
    "consumer_assigned_partitions",
    "record_message_produced",
    "record_producer_error",
    "record_message_consumed",
    "record_processing_outcome",
    "record_processing_error",
    "record_retry_message",
    "record_dlq_message",
    "record_event_persisted",
    "update_connection_status",
    "update_assigned_partitions",
]
