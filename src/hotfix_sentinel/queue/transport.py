"""
Queue transport interface.
"""
from abc import ABC, abstractmethod
from typing import List

from ..models import Evidence


class QueueTransport(ABC):
    """
    Pull-based, at-least-once message queue.

    Messages that are pulled but never acknowledged are redelivered once
    their lease (ack deadline) expires.
    """

    @abstractmethod
    def pull(self, max_messages: int, timeout: float) -> List[Evidence]:
        """
        Request up to ``max_messages``, waiting at most ``timeout`` seconds.

        Raises:
            QueueError: If the queue could not be reached
        """
        pass

    @abstractmethod
    def acknowledge(self, ack_id: str) -> bool:
        """Acknowledge one message. Returns False instead of raising."""
        pass

    def describe(self) -> str:
        return type(self).__name__

    def close(self) -> None:
        pass
