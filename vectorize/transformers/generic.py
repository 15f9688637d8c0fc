"""Request builder for self-hosted, OpenAI-compatible embedding services."""

from typing import Optional, Sequence

from vectorize.types import InputRecord, JobMeta

from .base import EmbeddingPayload, EmbeddingRequest, Transformer


def prepare_generic_embedding_request(
    job_meta: JobMeta,
    inputs: Sequence[InputRecord],
    url: str,
) -> EmbeddingRequest:
    """Build a request for the embedding service at ``url``.

    The job's transformer name is passed through as the model. An ``api_key``
    job parameter, when present, is sent as a bearer token.
    """
    api_key: Optional[str] = job_meta.params.get("api_key")
    return EmbeddingRequest(
        transformer=Transformer.GENERIC,
        url=url,
        payload=EmbeddingPayload(
            input=[record.inputs for record in inputs],
            model=job_meta.transformer,
        ),
        api_key=api_key,
    )
