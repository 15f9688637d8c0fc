"""Exception hierarchy for the vectorize worker.

Every failure raised while handling a message derives from ``VectorizeError``.
The worker loop treats all job-level errors the same way when deciding what
to do with a message; the subclasses exist so logs and metrics can tell the
failure modes apart.
"""


class VectorizeError(Exception):
    """Base exception for worker operations."""
    pass


class TransientQueueError(VectorizeError):
    """Reading from or deleting on the queue failed."""
    pass


class MalformedJobError(VectorizeError):
    """Job payload or parameters could not be interpreted."""
    pass


class ProviderError(VectorizeError):
    """Embedding provider request failed or returned unusable data."""
    pass


class PersistenceError(VectorizeError):
    """Writing embeddings to the database failed."""
    pass
