"""Base queue client interface."""

from abc import ABC, abstractmethod
from typing import Optional

from vectorize.common.errors import TransientQueueError
from vectorize.types import QueueMessage

__all__ = ["QueueClient", "TransientQueueError"]


class QueueClient(ABC):
    """Abstract visibility-timeout queue.

    A read hides the returned message for ``visibility_timeout`` seconds and
    increments its read count; a message that is not deleted within that
    window becomes readable again.
    """

    @abstractmethod
    async def read(self, queue_name: str, visibility_timeout: int) -> Optional[QueueMessage]:
        """Read at most one message.

        Returns ``None`` when the queue has nothing visible. Raises
        ``TransientQueueError`` when the queue cannot be reached.
        """
        pass

    @abstractmethod
    async def delete(self, queue_name: str, msg_id: int) -> bool:
        """Delete a message.

        Returns ``True`` if a message was deleted, ``False`` if it was already
        gone. Raises ``TransientQueueError`` on transport failure.
        """
        pass
