"""
Google Cloud Pub/Sub queue transport (synchronous pull).
"""
import logging
from typing import Any, List, Optional

from ..exceptions import QueueError
from ..models import Evidence
from ..security import sanitize_error
from .transport import QueueTransport

logger = logging.getLogger(__name__)


class PubSubQueueTransport(QueueTransport):
    """
    Pulls error-log messages from a Pub/Sub subscription.

    Example:
        >>> transport = PubSubQueueTransport(project_id="prod", subscription="error-logs-sub")
        >>> batch = transport.pull(max_messages=1000, timeout=30)
    """

    def __init__(
        self,
        project_id: str,
        subscription: str,
        credentials_path: Optional[str] = None,
        client: Any = None
    ):
        """
        Initialize the Pub/Sub transport.

        Args:
            project_id: GCP project ID
            subscription: Subscription name (not the full path)
            credentials_path: Optional path to service account JSON
            client: Pre-built ``SubscriberClient`` (tests)
        """
        try:
            from google.api_core import exceptions as api_exceptions
            self.api_exceptions = api_exceptions

            if client is None:
                from google.cloud import pubsub_v1

                if credentials_path:
                    from google.oauth2 import service_account
                    credentials = service_account.Credentials.from_service_account_file(
                        credentials_path
                    )
                    client = pubsub_v1.SubscriberClient(credentials=credentials)
                else:
                    # Use default credentials
                    client = pubsub_v1.SubscriberClient()

        except ImportError:
            raise ImportError(
                "google-cloud-pubsub required. Install with: pip install 'hotfix-sentinel[pubsub]'"
            )

        self.client = client
        self.subscription_path = client.subscription_path(project_id, subscription)
        logger.info(f"Initialized Pub/Sub transport for {self.subscription_path}")

    def describe(self) -> str:
        return f"pubsub:{self.subscription_path}"

    def pull(self, max_messages: int, timeout: float) -> List[Evidence]:
        try:
            response = self.client.pull(
                request={"subscription": self.subscription_path, "max_messages": max_messages},
                timeout=timeout,
            )
        except self.api_exceptions.DeadlineExceeded:
            logger.debug("No messages within pull timeout")
            return []
        except self.api_exceptions.GoogleAPICallError as e:
            raise QueueError(f"Pull from {self.subscription_path} failed: {sanitize_error(e)}") from e

        batch = []
        for received in response.received_messages:
            message = received.message
            batch.append(Evidence(
                data=message.data.decode("utf-8", errors="replace"),
                message_id=message.message_id,
                ack_id=received.ack_id,
                publish_time=message.publish_time or None,
                attributes=dict(message.attributes),
            ))

        logger.info(f"Received {len(batch)} message(s) from {self.subscription_path}")
        return batch

    def acknowledge(self, ack_id: str) -> bool:
        try:
            self.client.acknowledge(
                request={"subscription": self.subscription_path, "ack_ids": [ack_id]}
            )
            return True
        except self.api_exceptions.GoogleAPICallError as e:
            logger.error(f"Acknowledge failed: {sanitize_error(e)}")
            return False

    def close(self) -> None:
        self.client.close()
