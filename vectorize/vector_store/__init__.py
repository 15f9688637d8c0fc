"""Write-back strategies for embeddings.

Primary components:
- ``base``: identifier/type validation and vector serialization.
- ``pgvector``: the append (update in place) and join (upsert) strategies.
"""

from .base import PersistenceError, SqlIdentifier, check_target, serialize_vector
from .pgvector import (
    build_append_query,
    build_upsert_query,
    update_append_table,
    upsert_embedding_table,
)

__all__ = [
    "PersistenceError",
    "SqlIdentifier",
    "check_target",
    "serialize_vector",
    "build_append_query",
    "build_upsert_query",
    "update_append_table",
    "upsert_embedding_table",
]
