"""
Queue transports and the polling consumer.
"""

from .consumer import ConsumerStats, QueueConsumer
from .memory import InMemoryQueueTransport
from .pubsub import PubSubQueueTransport
from .transport import QueueTransport

__all__ = [
    "ConsumerStats",
    "QueueConsumer",
    "QueueTransport",
    "InMemoryQueueTransport",
    "PubSubQueueTransport",
]
