"""Shared fakes for queue, database, and dispatcher.

The fake pool keeps a tiny in-memory model of the two target tables so write
strategies can be checked for their end state, not only for the SQL they
issue.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

import pytest

from vectorize.common.errors import ProviderError, TransientQueueError
from vectorize.queue import QueueClient
from vectorize.transformers import EmbeddingRequest, ProviderEmbedding, Transformer, merge_input_output
from vectorize.transformers.generic import prepare_generic_embedding_request
from vectorize.transformers.openai import prepare_openai_request
from vectorize.types import QueueMessage


class FakeConnection:
    """Records statements and applies INSERT/UPDATE to in-memory tables."""

    def __init__(self, pool: "FakePool"):
        self.pool = pool

    async def execute(self, query: str, *args: Any) -> str:
        self.pool.statements.append((query, args))
        if self.pool.fail_on_call is not None and len(self.pool.statements) == self.pool.fail_on_call:
            raise ConnectionResetError("connection reset by peer")

        if query.startswith("INSERT INTO"):
            table = query.split()[2]
            rows = self.pool.tables.setdefault(table, {})
            for key, vector in zip(args[0::2], args[1::2]):
                rows[key] = vector
            return f"INSERT 0 {len(args) // 2}"

        if query.startswith("UPDATE"):
            table = query.split()[1]
            column = re.search(r"SET (\S+) = \$1", query).group(1)
            rows = self.pool.tables.setdefault(table, {})
            rows.setdefault(args[1], {})[column] = args[0]
            return "UPDATE 1"

        return "OK"

    async def fetchrow(self, query: str, *args: Any) -> Optional[Dict[str, Any]]:
        self.pool.statements.append((query, args))
        return self.pool.rows.pop(0) if self.pool.rows else None

    async def fetchval(self, query: str, *args: Any) -> Any:
        self.pool.statements.append((query, args))
        return self.pool.fetchval_result


class _Acquire:
    def __init__(self, pool: "FakePool"):
        self.pool = pool

    async def __aenter__(self) -> FakeConnection:
        if self.pool.acquire_error is not None:
            raise self.pool.acquire_error
        return FakeConnection(self.pool)

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


class FakePool:
    def __init__(self):
        self.statements: List[Tuple[str, Tuple[Any, ...]]] = []
        self.tables: Dict[str, Dict[str, Any]] = {}
        self.rows: List[Dict[str, Any]] = []
        self.fetchval_result: Any = True
        self.fail_on_call: Optional[int] = None
        self.acquire_error: Optional[Exception] = None

    def acquire(self) -> _Acquire:
        return _Acquire(self)


class FakeQueue(QueueClient):
    def __init__(self, messages: Optional[List[QueueMessage]] = None):
        self.messages = list(messages or [])
        self.reads: List[Tuple[str, int]] = []
        self.deleted: List[int] = []
        self.read_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None

    async def read(self, queue_name: str, visibility_timeout: int) -> Optional[QueueMessage]:
        self.reads.append((queue_name, visibility_timeout))
        if self.read_error is not None:
            raise self.read_error
        return self.messages.pop(0) if self.messages else None

    async def delete(self, queue_name: str, msg_id: int) -> bool:
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(msg_id)
        return True


class FakeDispatcher:
    """Returns fixed vectors, optionally reversed to mimic reordering."""

    def __init__(self, error: Optional[Exception] = None, reverse: bool = False):
        self.error = error
        self.reverse = reverse
        self.requests: List[EmbeddingRequest] = []
        self.built: List[Tuple[Any, Any]] = []

    def build_request(self, job_meta, inputs) -> EmbeddingRequest:
        self.built.append((job_meta, inputs))
        if Transformer.from_name(job_meta.transformer) is Transformer.OPENAI:
            return prepare_openai_request(job_meta, inputs, "http://openai.test/v1/embeddings", "sk-test")
        return prepare_generic_embedding_request(job_meta, inputs, "http://embed.test/v1/embeddings")

    async def invoke(self, request: EmbeddingRequest) -> List[ProviderEmbedding]:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        results = [
            ProviderEmbedding(index=i, embedding=[float(i), float(i) + 0.5])
            for i in range(len(request.payload.input))
        ]
        return list(reversed(results)) if self.reverse else results

    def merge(self, inputs, embeddings):
        return merge_input_output(inputs, embeddings)


def make_message(
    msg_id: int = 1,
    read_ct: int = 1,
    transformer: str = "sentence-transformers/all-MiniLM-L12-v2",
    table_method: str = "join",
    keys: Tuple[str, ...] = ("1", "2"),
    **params: Any,
) -> QueueMessage:
    job_params = {
        "schema": "public",
        "table": "products",
        "columns": ["description"],
        "table_method": table_method,
        "primary_key": "product_id",
        "pkey_type": "integer",
    }
    job_params.update(params)
    return QueueMessage(
        msg_id=msg_id,
        read_ct=read_ct,
        message={
            "job_name": "product_search",
            "job_meta": {
                "job_id": 7,
                "name": "product_search",
                "job_type": "Columns",
                "transformer": transformer,
                "search_alg": "pgv_cosine_similarity",
                "params": job_params,
            },
            "inputs": [
                {"record_id": key, "inputs": f"product {key}", "token_estimate": 2}
                for key in keys
            ],
        },
    )


@pytest.fixture
def pool() -> FakePool:
    return FakePool()


@pytest.fixture
def queue() -> FakeQueue:
    return FakeQueue()


@pytest.fixture
def dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture
def failing_dispatcher() -> FakeDispatcher:
    return FakeDispatcher(error=ProviderError("upstream timed out"))


@pytest.fixture
def queue_error() -> TransientQueueError:
    return TransientQueueError("queue unreachable")


@pytest.fixture
def message_factory():
    return make_message


@pytest.fixture
def reordering_dispatcher() -> FakeDispatcher:
    return FakeDispatcher(reverse=True)
