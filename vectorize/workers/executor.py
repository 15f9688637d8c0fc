"""Execution of a single embedding job.

``execute_job`` takes one queue message from payload to persisted vectors:
parse, build the provider request, invoke it, pair the results with their
records, and write them with the job's table method. Any failure aborts the
job and propagates to the caller, which owns the retry decision.
"""

from typing import Optional

import asyncpg
from pydantic import ValidationError
import structlog

from vectorize.common.errors import MalformedJobError
from vectorize.common.metrics import MetricsCollector
from vectorize.transformers import EmbeddingDispatcher
from vectorize.types import JobMessage, JobParams, QueueMessage, TableMethod
from vectorize.vector_store import check_target, update_append_table, upsert_embedding_table

logger = structlog.get_logger("vectorize.workers.executor")


def parse_job(message: QueueMessage) -> JobMessage:
    """Validate the raw payload of ``message`` into a ``JobMessage``."""
    try:
        return JobMessage.model_validate(message.message)
    except ValidationError as e:
        raise MalformedJobError(f"Invalid job message {message.msg_id}: {e}") from e


def parse_job_params(job: JobMessage) -> JobParams:
    try:
        return JobParams.model_validate(job.job_meta.params)
    except ValidationError as e:
        raise MalformedJobError(f"Invalid params for job {job.job_name}: {e}") from e


async def execute_job(
    pool: asyncpg.Pool,
    message: QueueMessage,
    dispatcher: EmbeddingDispatcher,
    metrics: Optional[MetricsCollector] = None,
) -> int:
    """Generate and store embeddings for the records in ``message``.

    Returns the number of records written. Raises a ``VectorizeError``
    subclass on any failure; nothing is written unless every input received
    an embedding.
    """
    job = parse_job(message)
    job_meta = job.job_meta
    job_params = parse_job_params(job)
    check_target(
        job_params.schema_name,
        job_meta.name,
        table=job_params.table if job_params.table_method == TableMethod.APPEND else None,
        pkey=job_params.primary_key if job_params.table_method == TableMethod.APPEND else None,
        pkey_type=job_params.pkey_type,
    )

    if not job.inputs:
        logger.info("Job has no inputs", job_name=job.job_name, msg_id=message.msg_id)
        return 0

    request = dispatcher.build_request(job_meta, job.inputs)
    embeddings = await dispatcher.invoke(request)
    paired_embeddings = dispatcher.merge(job.inputs, embeddings)

    if job_params.table_method == TableMethod.APPEND:
        written = await update_append_table(
            pool,
            paired_embeddings,
            schema=job_params.schema_name,
            table=job_params.table,
            project=job_meta.name,
            pkey=job_params.primary_key,
            pkey_type=job_params.pkey_type,
        )
    else:
        written = await upsert_embedding_table(
            pool,
            schema=job_params.schema_name,
            project=job_meta.name,
            embeddings=paired_embeddings,
            pkey_type=job_params.pkey_type,
        )

    if metrics:
        metrics.record_embeddings_written(job_params.table_method.value, written)

    logger.info(
        "Embeddings written",
        job_name=job.job_name,
        msg_id=message.msg_id,
        table_method=job_params.table_method.value,
        count=written,
    )
    return written
