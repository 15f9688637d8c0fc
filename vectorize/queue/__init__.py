"""Queue client for vectorize job messages.

Primary components:
- ``base``: abstract ``QueueClient`` interface.
- ``pgmq``: client for the pgmq Postgres extension over an asyncpg pool.

The visibility timeout, redelivery bookkeeping, and storage all live in the
queue itself; this package only reads and deletes.
"""

from .base import QueueClient
from .pgmq import PgmqQueue

__all__ = ["QueueClient", "PgmqQueue"]
