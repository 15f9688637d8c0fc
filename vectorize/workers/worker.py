"""Worker loop step: read one message, run its job, dispose of it.

Disposition rules
- Job succeeded: delete the message
- Job failed and the message has been read more than ``max_read_count``
  times: delete it (the job is dropped)
- Job failed otherwise: leave it; it reappears after the visibility timeout

A failed delete is logged only. The message will be delivered again, and
both write strategies overwrite by key, so a replay converges.
"""

import time
from typing import Optional, Tuple

import asyncpg
import structlog

from vectorize.common.errors import TransientQueueError, VectorizeError
from vectorize.common.metrics import MetricsCollector
from vectorize.queue import QueueClient
from vectorize.transformers import EmbeddingDispatcher, Transformer
from vectorize.types import QueueMessage, TableMethod

from .executor import execute_job

logger = structlog.get_logger("vectorize.workers.worker")

VISIBILITY_TIMEOUT_SECONDS = 180
MAX_READ_COUNT = 2


async def run_worker(
    queue: QueueClient,
    pool: asyncpg.Pool,
    queue_name: str,
    dispatcher: EmbeddingDispatcher,
    visibility_timeout: int = VISIBILITY_TIMEOUT_SECONDS,
    max_read_count: int = MAX_READ_COUNT,
    metrics: Optional[MetricsCollector] = None,
) -> Optional[bool]:
    """Process at most one message from ``queue_name``.

    Returns ``True`` if a message was read (whatever the job's outcome) and
    ``None`` if the queue was empty. Raises ``TransientQueueError`` if the
    read itself failed; the queue is left untouched in that case.
    """
    try:
        msg = await queue.read(queue_name, visibility_timeout)
    except TransientQueueError:
        if metrics:
            metrics.record_queue_read("error")
        raise

    if msg is None:
        logger.debug("No messages in queue", queue=queue_name)
        if metrics:
            metrics.record_queue_read("empty")
        return None

    if metrics:
        metrics.record_queue_read("message")

    log = logger.bind(queue=queue_name, msg_id=msg.msg_id, job_name=msg.job_name, read_ct=msg.read_ct)
    log.info("Received message")

    transformer, table_method = _job_labels(msg)
    start_time = time.perf_counter()
    try:
        await execute_job(pool, msg, dispatcher, metrics=metrics)
        job_succeeded = True
    except VectorizeError as e:
        job_succeeded = False
        log.error("Job failed", error_type=type(e).__name__, error=str(e))
    except Exception as e:
        job_succeeded = False
        log.exception("Job failed with unexpected error", error=str(e))

    if metrics:
        metrics.record_job(
            transformer,
            table_method,
            "success" if job_succeeded else "failed",
            duration=time.perf_counter() - start_time,
        )

    if job_succeeded:
        await _delete_message(queue, queue_name, msg, "success", metrics)
    elif msg.read_ct > max_read_count:
        log.warning("Read limit exceeded, dropping message", max_read_count=max_read_count)
        await _delete_message(queue, queue_name, msg, "read_limit", metrics)
    else:
        log.info("Leaving message for redelivery", visibility_timeout=visibility_timeout)

    return True


async def _delete_message(
    queue: QueueClient,
    queue_name: str,
    msg: QueueMessage,
    reason: str,
    metrics: Optional[MetricsCollector],
) -> None:
    try:
        await queue.delete(queue_name, msg.msg_id)
    except TransientQueueError as e:
        logger.warning("Error deleting message", queue=queue_name, msg_id=msg.msg_id, error=str(e))
        if metrics:
            metrics.record_message_deleted("error")
        return
    logger.info("Deleted message", queue=queue_name, msg_id=msg.msg_id, reason=reason)
    if metrics:
        metrics.record_message_deleted(reason)


def _job_labels(msg: QueueMessage) -> Tuple[str, str]:
    """Bounded metric labels for a message that may not parse."""
    job_meta = msg.message.get("job_meta")
    if not isinstance(job_meta, dict):
        return "unknown", "unknown"

    transformer_name = job_meta.get("transformer")
    transformer = (
        Transformer.from_name(transformer_name).value
        if isinstance(transformer_name, str)
        else "unknown"
    )

    params = job_meta.get("params")
    method = params.get("table_method") if isinstance(params, dict) else None
    known = {m.value for m in TableMethod}
    table_method = method if isinstance(method, str) and method in known else "unknown"
    return transformer, table_method
