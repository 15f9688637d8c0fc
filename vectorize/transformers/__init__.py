"""Embedding provider requests.

Primary components:
- ``base``: ``Transformer`` enum and request/response models.
- ``openai``: request builder for OpenAI embedding models.
- ``generic``: request builder for a self-hosted embedding service.
- ``http_handler``: ``EmbeddingDispatcher``, which sends requests and pairs
  results back to their input records.
"""

from .base import EmbeddingRequest, ProviderEmbedding, ProviderError, Transformer
from .http_handler import EmbeddingDispatcher, merge_input_output

__all__ = [
    "EmbeddingDispatcher",
    "EmbeddingRequest",
    "ProviderEmbedding",
    "ProviderError",
    "Transformer",
    "merge_input_output",
]
