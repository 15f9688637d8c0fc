"""pgmq implementation of the queue client.

Messages live in Postgres and are accessed through the SQL functions the pgmq
extension installs (``pgmq.read``, ``pgmq.delete``). The pool is owned by the
caller; this client never creates or closes it.
"""

import json
from typing import Any, Optional

import asyncpg
import structlog

from vectorize.types import QueueMessage

from .base import QueueClient, TransientQueueError

logger = structlog.get_logger("vectorize.queue.pgmq")

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class PgmqQueue(QueueClient):
    """Queue client backed by the pgmq extension."""

    READ_QUERY = """
        SELECT msg_id, read_ct, enqueued_at, vt, message
        FROM pgmq.read($1, $2, $3)
    """

    DELETE_QUERY = "SELECT pgmq.delete($1, $2)"

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def read(self, queue_name: str, visibility_timeout: int) -> Optional[QueueMessage]:
        """Read one message, hiding it for ``visibility_timeout`` seconds."""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(self.READ_QUERY, queue_name, visibility_timeout, 1)
        except _DB_ERRORS as e:
            logger.warning("Error reading message", queue=queue_name, error=str(e))
            raise TransientQueueError(f"Failed to read from queue {queue_name}: {e}") from e

        if row is None:
            return None

        return QueueMessage(
            msg_id=row["msg_id"],
            read_ct=row["read_ct"],
            enqueued_at=row["enqueued_at"],
            vt=row["vt"],
            message=self._decode_payload(row["message"]),
        )

    async def delete(self, queue_name: str, msg_id: int) -> bool:
        """Delete ``msg_id`` from ``queue_name``."""
        try:
            async with self.pool.acquire() as conn:
                deleted = await conn.fetchval(self.DELETE_QUERY, queue_name, msg_id)
        except _DB_ERRORS as e:
            raise TransientQueueError(f"Failed to delete message {msg_id}: {e}") from e
        return bool(deleted)

    @staticmethod
    def _decode_payload(raw: Any) -> dict:
        # jsonb arrives as text unless the pool registered a json codec
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except ValueError:
                logger.warning("Queue message payload is not valid JSON")
                return {}
        if not isinstance(raw, dict):
            return {}
        return raw
