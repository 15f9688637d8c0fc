"""HTTP dispatch of embedding requests.

``EmbeddingDispatcher`` builds the provider request for a job, sends it with a
shared ``httpx.AsyncClient``, and pairs the returned vectors with the records
they were computed from.

Pairing contract
- Each result must carry ``index``, the position of its input in the request
- Every input position must appear exactly once
- Anything else is a ``ProviderError``; results are never paired by position
"""

import time
from typing import Any, List, Optional, Sequence

import httpx
from pydantic import ValidationError
import structlog

from vectorize.common.metrics import MetricsCollector
from vectorize.types import InputRecord, JobMeta, PairedEmbedding

from .base import EmbeddingRequest, ProviderEmbedding, ProviderError, Transformer
from .generic import prepare_generic_embedding_request
from .openai import prepare_openai_request

logger = structlog.get_logger("vectorize.transformers.http_handler")


class EmbeddingDispatcher:
    """Builds, sends, and merges embedding requests.

    Parameters
    - http_client: Shared async client; owned by the caller
    - embedding_service_url: Endpoint for the generic transformer
    - openai_url: Endpoint for the OpenAI transformer
    - openai_api_key: Fallback key when a job does not carry its own
    - metrics: Optional collector for provider latency
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        embedding_service_url: str,
        openai_url: str,
        openai_api_key: Optional[str] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.http_client = http_client
        self.embedding_service_url = embedding_service_url
        self.openai_url = openai_url
        self.openai_api_key = openai_api_key
        self.metrics = metrics

    def build_request(self, job_meta: JobMeta, inputs: Sequence[InputRecord]) -> EmbeddingRequest:
        """Build the provider request selected by ``job_meta.transformer``."""
        transformer = Transformer.from_name(job_meta.transformer)
        if transformer is Transformer.OPENAI:
            logger.info("OpenAI transformer", job_name=job_meta.name)
            return prepare_openai_request(job_meta, inputs, self.openai_url, self.openai_api_key)
        return prepare_generic_embedding_request(job_meta, inputs, self.embedding_service_url)

    async def invoke(self, request: EmbeddingRequest) -> List[ProviderEmbedding]:
        """Send ``request`` and return the provider's embedding rows."""
        start_time = time.perf_counter()
        try:
            response = await self.http_client.post(
                request.url,
                json=request.payload.model_dump(),
                headers=request.headers(),
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Embedding request to {request.url} returned status {e.response.status_code}: "
                f"{e.response.text[:500]}"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Embedding request to {request.url} failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Embedding response from {request.url} is not JSON") from e
        finally:
            if self.metrics:
                self.metrics.record_provider_request(
                    request.transformer.value,
                    time.perf_counter() - start_time,
                )

        return parse_embedding_response(body)

    def merge(
        self,
        inputs: Sequence[InputRecord],
        embeddings: Sequence[ProviderEmbedding],
    ) -> List[PairedEmbedding]:
        return merge_input_output(inputs, embeddings)


def parse_embedding_response(body: Any) -> List[ProviderEmbedding]:
    """Validate an OpenAI-style ``{"data": [...]}`` body."""
    if not isinstance(body, dict) or not isinstance(body.get("data"), list):
        raise ProviderError("Embedding response has no 'data' list")
    try:
        return [ProviderEmbedding.model_validate(item) for item in body["data"]]
    except ValidationError as e:
        raise ProviderError(f"Malformed embedding in response: {e}") from e


def merge_input_output(
    inputs: Sequence[InputRecord],
    embeddings: Sequence[ProviderEmbedding],
) -> List[PairedEmbedding]:
    """Pair each input record with the embedding computed for it.

    Results are matched on ``index`` and returned in input order.
    """
    if len(embeddings) != len(inputs):
        raise ProviderError(
            f"Provider returned {len(embeddings)} embeddings for {len(inputs)} inputs"
        )

    by_index = {}
    for item in embeddings:
        if not 0 <= item.index < len(inputs):
            raise ProviderError(f"Embedding index {item.index} out of range")
        if item.index in by_index:
            raise ProviderError(f"Duplicate embedding index {item.index}")
        by_index[item.index] = item.embedding

    return [
        PairedEmbedding(primary_key=record.primary_key, embeddings=by_index[position])
        for position, record in enumerate(inputs)
    ]
