"""
Library event dispatchers.

Workers:
    IngestDispatcher - consumes the main library events topic
    RetryDispatcher  - consumes the retry topic, gated by RETRY_LISTENER_STARTUP
"""

from library_events.workers.base import LibraryEventDispatcher
from library_events.workers.ingest_dispatcher import IngestDispatcher
from library_events.workers.retry_dispatcher import RetryDispatcher

__all__ = [
    "LibraryEventDispatcher",
    "IngestDispatcher",
    "RetryDispatcher",
]
