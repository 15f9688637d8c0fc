"""OpenAI embeddings request builder."""

from typing import List, Optional, Sequence

import structlog

from vectorize.common.errors import MalformedJobError
from vectorize.types import InputRecord, JobMeta

from .base import EmbeddingPayload, EmbeddingRequest, Transformer

logger = structlog.get_logger("vectorize.transformers.openai")

# max input tokens for OpenAI embedding models
MAX_TOKEN_LEN = 8192


def trim_inputs(inputs: Sequence[InputRecord]) -> List[str]:
    """Return the texts to send, cutting any over-long input to its first
    ``MAX_TOKEN_LEN`` whitespace-separated words."""
    texts = []
    for record in inputs:
        if record.token_estimate > MAX_TOKEN_LEN:
            words = record.inputs.split()
            logger.debug(
                "Trimming input over token limit",
                primary_key=record.primary_key,
                token_estimate=record.token_estimate,
            )
            texts.append(" ".join(words[:MAX_TOKEN_LEN]))
        else:
            texts.append(record.inputs)
    return texts


def prepare_openai_request(
    job_meta: JobMeta,
    inputs: Sequence[InputRecord],
    url: str,
    api_key: Optional[str] = None,
) -> EmbeddingRequest:
    """Build an OpenAI embeddings request.

    The job's own ``api_key`` parameter takes precedence over ``api_key``.
    Raises ``MalformedJobError`` when neither is set.
    """
    key = job_meta.params.get("api_key") or api_key
    if not key:
        raise MalformedJobError(f"No OpenAI API key configured for job {job_meta.name}")

    return EmbeddingRequest(
        transformer=Transformer.OPENAI,
        url=url,
        payload=EmbeddingPayload(input=trim_inputs(inputs), model=job_meta.transformer),
        api_key=key,
    )
