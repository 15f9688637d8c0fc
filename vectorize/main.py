"""Vectorize worker entrypoint.

Polls the job queue forever, one message at a time. When a poll finds
nothing, or the queue cannot be reached, the runner sleeps for the configured
poll interval before trying again; after a processed message it polls again
immediately.

Run with:
    vectorize-worker
"""

import asyncio
import json
import signal
from contextlib import suppress
from typing import Optional

import asyncpg
import httpx
import structlog

from vectorize.common.config import WorkerConfig, get_config
from vectorize.common.errors import TransientQueueError
from vectorize.common.logging import configure_logging
from vectorize.common.metrics import MetricsCollector, get_metrics_collector
from vectorize.queue import PgmqQueue, QueueClient
from vectorize.transformers import EmbeddingDispatcher
from vectorize.workers import run_worker

logger = structlog.get_logger("vectorize.main")

SERVICE_NAME = "vectorize-worker"


class WorkerRunner:
    """Drives ``run_worker`` in a loop until stopped."""

    def __init__(
        self,
        config: WorkerConfig,
        queue: QueueClient,
        pool: asyncpg.Pool,
        dispatcher: EmbeddingDispatcher,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config
        self.queue = queue
        self.pool = pool
        self.dispatcher = dispatcher
        self.metrics = metrics
        self._stop_event = asyncio.Event()

    async def run_once(self) -> Optional[bool]:
        return await run_worker(
            self.queue,
            self.pool,
            self.config.vectorize_queue_name,
            self.dispatcher,
            visibility_timeout=self.config.vectorize_visibility_timeout,
            max_read_count=self.config.vectorize_max_read_count,
            metrics=self.metrics,
        )

    async def run_forever(self) -> None:
        logger.info(
            "Worker started",
            queue=self.config.vectorize_queue_name,
            poll_interval=self.config.vectorize_poll_interval,
        )
        while not self._stop_event.is_set():
            try:
                progressed = await self.run_once()
            except TransientQueueError as e:
                logger.warning("Queue unavailable, backing off", error=str(e))
                progressed = None

            if progressed is None:
                await self._sleep(self.config.vectorize_poll_interval)
        logger.info("Worker stopped")

    def stop(self) -> None:
        self._stop_event.set()

    async def _sleep(self, seconds: float) -> None:
        # wakes early on stop()
        with suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Decode json/jsonb columns (pgmq payloads) into Python objects."""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


async def create_pool(config: WorkerConfig) -> asyncpg.Pool:
    try:
        pool = await asyncpg.create_pool(
            config.vectorize_database_url,
            min_size=1,
            max_size=config.vectorize_pool_size,
            init=_init_connection,
        )
    except (asyncpg.PostgresError, OSError) as e:
        logger.error("Failed to create database pool", error=str(e))
        raise
    logger.info("Created database pool", pool_size=config.vectorize_pool_size)
    return pool


async def serve(config: WorkerConfig) -> None:
    """Build the worker's dependencies and run until SIGINT/SIGTERM."""
    metrics = get_metrics_collector(SERVICE_NAME)
    if config.vectorize_metrics_port:
        metrics.serve(config.vectorize_metrics_port)

    pool = await create_pool(config)
    http_client = httpx.AsyncClient(timeout=config.vectorize_request_timeout)
    try:
        dispatcher = EmbeddingDispatcher(
            http_client,
            embedding_service_url=config.vectorize_embedding_service_url,
            openai_url=config.vectorize_openai_url,
            openai_api_key=config.vectorize_openai_api_key,
            metrics=metrics,
        )
        runner = WorkerRunner(config, PgmqQueue(pool), pool, dispatcher, metrics)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with suppress(NotImplementedError):
                loop.add_signal_handler(sig, runner.stop)

        await runner.run_forever()
    finally:
        await http_client.aclose()
        await pool.close()
        logger.info("Worker resources closed")


def main() -> None:
    config = get_config()
    configure_logging(
        SERVICE_NAME,
        config.vectorize_log_level,
        config.vectorize_log_format,
        queue=config.vectorize_queue_name,
    )
    asyncio.run(serve(config))


if __name__ == "__main__":
    main()
