"""Embedding job worker for Postgres.

Subpackages:
- ``vectorize.common``: configuration, logging, metrics, and error types.
- ``vectorize.queue``: pgmq queue client used to read and delete job messages.
- ``vectorize.transformers``: embedding provider requests and result pairing.
- ``vectorize.vector_store``: write-back strategies for pgvector tables.
- ``vectorize.workers``: job execution and the per-message worker loop.
"""

__version__ = "0.1.0"
