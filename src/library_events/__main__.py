"""
Entry point for running library event dispatchers.

Usage:
    # Run the ingest dispatcher, plus the retry dispatcher if
    # RETRY_LISTENER_STARTUP is true
    python -m library_events

    # Run a single dispatcher
    python -m library_events --worker ingest
    python -m library_events --worker retry

    # Run with metrics server on a custom port
    python -m library_events --metrics-port 9090

Architecture:
    - Ingest: library-events → store, failures → RETRY or DLT
    - Retry:  library-events.RETRY → store, failures → RETRY or DLT
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

from prometheus_client import start_http_server

from core.logging.context import set_log_context
from core.logging.setup import get_logger, setup_logging, setup_multi_worker_logging

# Worker stages for multi-worker logging
WORKER_STAGES = ["ingest", "retry"]

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)

# Set by signal handlers, checked by dispatchers to finish in-flight records before exiting
_shutdown_event: Optional[asyncio.Event] = None


def get_shutdown_event() -> asyncio.Event:
    """Get or create the global shutdown event."""
    global _shutdown_event
    if _shutdown_event is None:
        _shutdown_event = asyncio.Event()
    return _shutdown_event


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Run library event dispatchers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run ingest (and retry when RETRY_LISTENER_STARTUP=true)
    python -m library_events

    # Run only the retry dispatcher, regardless of RETRY_LISTENER_STARTUP
    python -m library_events --worker retry

    # Run with custom metrics port
    python -m library_events --metrics-port 9090
        """,
    )

    parser.add_argument(
        "--worker",
        choices=["ingest", "retry", "all"],
        default="all",
        help="Which dispatcher(s) to run (default: all)",
    )

    parser.add_argument(
        "--metrics-port",
        type=int,
        default=8000,
        help="Port for Prometheus metrics server (default: 8000)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Log directory path (default: from LOG_DIR env var or ./logs)",
    )

    return parser.parse_args(argv)


async def run_dispatcher(dispatcher, stage: str) -> None:
    """Run one dispatcher until it stops or the shutdown event is set.

    When the shutdown event is set, the dispatcher lets its in-flight
    records finish, then releases its partitions and connections.
    """
    set_log_context(stage=stage)
    logger.info(f"Starting {stage} dispatcher...")

    shutdown_event = get_shutdown_event()

    async def shutdown_watcher():
        """Wait for shutdown signal and stop dispatcher gracefully."""
        await shutdown_event.wait()
        logger.info(f"Shutdown signal received, stopping {stage} dispatcher...")
        await dispatcher.stop()

    watcher_task = asyncio.create_task(shutdown_watcher())

    try:
        await dispatcher.start()
    finally:
        watcher_task.cancel()
        try:
            await watcher_task
        except asyncio.CancelledError:
            pass
        await dispatcher.stop()


async def run_ingest(config) -> None:
    from library_events.workers import IngestDispatcher

    await run_dispatcher(IngestDispatcher(config), "ingest")


async def run_retry(config, enabled: Optional[bool] = None) -> None:
    from library_events.workers import RetryDispatcher

    await run_dispatcher(RetryDispatcher(config, enabled=enabled), "retry")


async def run_all(config) -> None:
    """Run the ingest dispatcher and, if enabled, the retry dispatcher."""
    logger.info("Starting library event dispatchers...")

    tasks = [asyncio.create_task(run_ingest(config), name="ingest-dispatcher")]

    if config.retry_listener_startup:
        tasks.append(asyncio.create_task(run_retry(config), name="retry-dispatcher"))
    else:
        logger.info("Retry listener disabled (RETRY_LISTENER_STARTUP=false)")

    try:
        await asyncio.gather(*tasks)
    except asyncio.CancelledError:
        logger.info("Dispatchers cancelled, shutting down...")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def setup_signal_handlers(loop: asyncio.AbstractEventLoop):
    """Set up signal handlers for graceful shutdown.

    Shutdown Behavior:
    - First SIGINT/SIGTERM: Sets the global shutdown event. Dispatchers
      finish the records in flight, commit their offsets, and leave
      their consumer groups.
    - Second signal: Forces immediate shutdown by cancelling all tasks.
      Uncommitted records are redelivered on the next start.

    Note: Signal handlers are not supported on Windows. On Windows,
    KeyboardInterrupt is used instead, which triggers asyncio.CancelledError.
    """

    def handle_signal(sig):
        logger.info(f"Received signal {sig.name}, initiating graceful shutdown...")
        shutdown_event = get_shutdown_event()
        if not shutdown_event.is_set():
            shutdown_event.set()
        else:
            logger.warning("Received second signal, forcing immediate shutdown...")
            for task in asyncio.all_tasks(loop):
                task.cancel()

    if sys.platform == "win32":
        logger.debug("Signal handlers not supported on Windows, using KeyboardInterrupt")
        return

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))


def main():
    """Main entry point."""
    global logger
    args = parse_args()

    log_level = getattr(logging, args.log_level)

    # JSON_LOGS=false gives human-readable file logs for local development
    json_logs = os.getenv("JSON_LOGS", "true").lower() in ("true", "1", "yes")

    # Log directory: CLI arg > env var > default ./logs
    log_dir = Path(args.log_dir or os.getenv("LOG_DIR", "logs"))

    worker_id = os.getenv("WORKER_ID", f"library-events-{args.worker}")

    if args.worker == "all":
        setup_multi_worker_logging(
            workers=WORKER_STAGES,
            domain="library_events",
            log_dir=log_dir,
            json_format=json_logs,
            console_level=log_level,
        )
    else:
        setup_logging(
            name="library_events",
            stage=args.worker,
            domain="library_events",
            log_dir=log_dir,
            json_format=json_logs,
            console_level=log_level,
            worker_id=worker_id,
        )

    # Re-get logger after setup to use new handlers
    logger = get_logger(__name__)

    from library_events.config import KafkaConfig

    try:
        config = KafkaConfig.from_env()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    logger.info(f"Starting metrics server on port {args.metrics_port}")
    start_http_server(args.metrics_port)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    setup_signal_handlers(loop)

    try:
        if args.worker == "ingest":
            loop.run_until_complete(run_ingest(config))
        elif args.worker == "retry":
            # Explicitly requested, so the startup flag does not apply
            loop.run_until_complete(run_retry(config, enabled=True))
        else:  # all
            loop.run_until_complete(run_all(config))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        loop.close()
        logger.info("Library events consumer shutdown complete")


if __name__ == "__main__":
    main()
