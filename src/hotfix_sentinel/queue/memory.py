"""
In-memory queue with leases and redelivery, for tests and dry runs.
"""
import itertools
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set

from ..constants import DEFAULT_ACK_DEADLINE_SECONDS
from ..exceptions import QueueError
from ..models import Evidence
from .transport import QueueTransport

logger = logging.getLogger(__name__)


@dataclass
class _StoredMessage:
    message_id: str
    data: str
    attributes: Dict[str, str]
    published_at: datetime
    delivery_attempts: int = 0
    ack_id: Optional[str] = None
    lease_expires: float = 0.0


@dataclass
class InMemoryQueueTransport(QueueTransport):
    """
    Queue held in process memory.

    A pulled message is leased for ``ack_deadline`` seconds; if not
    acknowledged by then it becomes deliverable again under a new ack id.

    Example:
        >>> queue = InMemoryQueueTransport()
        >>> queue.publish("java.lang.NullPointerException ...")
        >>> batch = queue.pull(max_messages=10, timeout=1)
        >>> queue.acknowledge(batch[0].ack_id)
        True
    """
    ack_deadline: float = DEFAULT_ACK_DEADLINE_SECONDS
    clock: Callable[[], float] = time.monotonic
    fail_pulls: int = 0
    failing_ack_ids: Set[str] = field(default_factory=set)

    def __post_init__(self):
        self._messages: Dict[str, _StoredMessage] = {}
        self._ids = itertools.count(1)
        self._acks = itertools.count(1)
        self._lock = threading.Lock()

    def publish(self, data: str, attributes: Optional[Dict[str, str]] = None) -> str:
        """Enqueue a message; returns its message id."""
        with self._lock:
            message_id = f"msg-{next(self._ids)}"
            self._messages[message_id] = _StoredMessage(
                message_id=message_id,
                data=data,
                attributes=dict(attributes or {}),
                published_at=datetime.now(timezone.utc),
            )
        return message_id

    def pull(self, max_messages: int, timeout: float) -> List[Evidence]:
        with self._lock:
            if self.fail_pulls > 0:
                self.fail_pulls -= 1
                raise QueueError("injected pull failure")

            now = self.clock()
            batch = []
            for message in self._messages.values():
                if len(batch) >= max_messages:
                    break
                if message.ack_id is not None and message.lease_expires > now:
                    continue

                message.ack_id = f"ack-{next(self._acks)}"
                message.lease_expires = now + self.ack_deadline
                message.delivery_attempts += 1
                batch.append(Evidence(
                    data=message.data,
                    message_id=message.message_id,
                    ack_id=message.ack_id,
                    publish_time=message.published_at,
                    attributes=message.attributes,
                ))

        if batch:
            logger.debug(f"Delivered {len(batch)} message(s)")
        return batch

    def acknowledge(self, ack_id: str) -> bool:
        with self._lock:
            if ack_id in self.failing_ack_ids:
                return False
            for message_id, message in self._messages.items():
                if message.ack_id == ack_id:
                    if message.lease_expires <= self.clock():
                        logger.warning(f"Ack {ack_id} arrived after lease expiry")
                        return False
                    del self._messages[message_id]
                    return True
        logger.warning(f"Unknown ack id {ack_id}")
        return False

    def expire_leases(self) -> None:
        """Make every leased message deliverable again."""
        with self._lock:
            for message in self._messages.values():
                message.lease_expires = 0.0

    def pending(self) -> int:
        """Messages not yet acknowledged (leased or not)."""
        with self._lock:
            return len(self._messages)

    def delivery_attempts(self, message_id: str) -> int:
        with self._lock:
            message = self._messages.get(message_id)
            return message.delivery_attempts if message else 0
