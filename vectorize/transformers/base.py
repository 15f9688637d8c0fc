"""Embedding request and response types.

The set of providers is closed: ``Transformer`` has one member per request
shape the worker knows how to build. Supporting a new provider means adding a
member and a builder, not registering a handler at runtime.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from vectorize.common.errors import ProviderError

__all__ = [
    "Transformer",
    "EmbeddingPayload",
    "EmbeddingRequest",
    "ProviderEmbedding",
    "ProviderError",
    "OPENAI_ADA_002",
]

OPENAI_ADA_002 = "text-embedding-ada-002"


class Transformer(Enum):
    """Request shape selected from a job's ``transformer`` string."""
    OPENAI = "openai"
    GENERIC = "generic"

    @classmethod
    def from_name(cls, transformer: str) -> "Transformer":
        """Map a job's transformer name to its request shape.

        Only the exact OpenAI model id selects ``OPENAI``; every other name is
        served by the generic embedding service.
        """
        if transformer == OPENAI_ADA_002:
            return cls.OPENAI
        return cls.GENERIC


class EmbeddingPayload(BaseModel):
    """OpenAI-compatible embeddings request body."""
    input: List[str]
    model: str


class EmbeddingRequest(BaseModel):
    """A fully built provider request."""
    transformer: Transformer
    url: str
    payload: EmbeddingPayload
    api_key: Optional[str] = Field(None, repr=False)

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers


class ProviderEmbedding(BaseModel):
    """One result row from the provider.

    ``index`` is the position of the input in the request's ``input`` list;
    it is what ties the vector back to its source record.
    """
    index: int
    embedding: List[float]
