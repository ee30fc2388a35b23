"""
Queue consumer: the pull / process / acknowledge loop.

Messages are acknowledged only after the workflow has returned for their
batch, whether the run succeeded or aborted. If the batch could not be
handed off, or classification failed, nothing is acknowledged and the
queue redelivers the messages after their lease expires.

Example:
    >>> consumer = QueueConsumer(transport, workflow, poll_interval=120)
    >>> consumer.start()
    >>> ...
    >>> consumer.stop()
"""
import logging
import threading
import time
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from ..constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_PULL_TIMEOUT_SECONDS,
)
from ..exceptions import ClassificationFailure
from ..logging_context import LoggingContext
from ..models import Evidence, IncidentRecord
from ..security import sanitize_error
from ..workflow.engine import RemediationWorkflow
from .transport import QueueTransport

logger = logging.getLogger(__name__)

WorkflowFactory = Callable[[], RemediationWorkflow]


@dataclass
class ConsumerStats:
    """Counters describing consumer activity since start-up."""

    polls: int = 0
    poll_failures: int = 0
    messages_received: int = 0
    batches_handed_off: int = 0
    handoff_failures: int = 0
    classification_failures: int = 0
    messages_acked: int = 0
    ack_failures: int = 0
    skipped_ticks: int = 0
    last_incident_id: Optional[str] = None
    last_poll_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class QueueConsumer:
    """
    Polls a queue on a fixed interval and drives one workflow run per batch.

    Only one batch is ever in flight: the scheduler runs on a single
    thread and a tick that finds a batch still in flight is skipped.

    Args:
        transport: Queue to pull from
        workflow: A workflow, or a factory called once per batch
        batch_size: Maximum messages per pull
        pull_timeout: Seconds a pull may wait for messages
        poll_interval: Seconds between the starts of consecutive ticks
    """

    def __init__(
        self,
        transport: QueueTransport,
        workflow: Union[RemediationWorkflow, WorkflowFactory],
        batch_size: int = DEFAULT_BATCH_SIZE,
        pull_timeout: float = DEFAULT_PULL_TIMEOUT_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    ):
        self.transport = transport
        if isinstance(workflow, RemediationWorkflow):
            self._workflow_factory: WorkflowFactory = lambda: workflow
        else:
            self._workflow_factory = workflow
        self.batch_size = batch_size
        self.pull_timeout = pull_timeout
        self.poll_interval = poll_interval

        self._stats = ConsumerStats()
        self._in_flight = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def poll(self) -> List[Evidence]:
        """
        Pull one batch. Transport errors are logged and yield an empty batch.
        """
        self._stats.polls += 1
        self._stats.last_poll_at = datetime.now(timezone.utc).isoformat()

        try:
            batch = self.transport.pull(self.batch_size, self.pull_timeout)
        except Exception as e:
            self._stats.poll_failures += 1
            logger.error(f"Poll of {self.transport.describe()} failed: {sanitize_error(e)}")
            return []

        self._stats.messages_received += len(batch)
        return batch

    def run_once(self) -> Optional[IncidentRecord]:
        """
        Poll, hand the batch to the workflow and acknowledge it.

        Returns:
            The incident record, or None if there was nothing to process or
            the batch was left for redelivery
        """
        batch = self.poll()
        if not batch:
            logger.debug("No messages")
            return None

        with LoggingContext(batch_id=uuid.uuid4().hex[:8]):
            logger.info(f"Processing batch of {len(batch)} message(s)")

            try:
                workflow = self._workflow_factory()
            except Exception as e:
                self._stats.handoff_failures += 1
                logger.error(f"Could not hand off batch, leaving it for redelivery: {e}", exc_info=True)
                return None

            try:
                record = workflow.run(batch)
            except ClassificationFailure as e:
                self._stats.classification_failures += 1
                logger.warning(f"Classification failed, leaving {len(batch)} message(s) for redelivery: {e}")
                return None
            except Exception as e:
                self._stats.handoff_failures += 1
                logger.error(f"Workflow raised, leaving batch for redelivery: {e}", exc_info=True)
                return None

            self._stats.batches_handed_off += 1
            self._stats.last_incident_id = record.incident_id
            self._acknowledge(batch)
            return record

    def _acknowledge(self, batch: List[Evidence]) -> None:
        for evidence in batch:
            with LoggingContext(message_id=evidence.message_id):
                try:
                    acked = self.transport.acknowledge(evidence.ack_id)
                except Exception as e:
                    logger.error(f"Acknowledge raised: {sanitize_error(e)}")
                    acked = False

                if acked:
                    self._stats.messages_acked += 1
                else:
                    self._stats.ack_failures += 1
                    logger.warning(f"Message {evidence.message_id} not acknowledged; it may be redelivered")

    def tick(self) -> Optional[IncidentRecord]:
        """One scheduled iteration; skipped while another batch is in flight."""
        if not self._in_flight.acquire(blocking=False):
            self._stats.skipped_ticks += 1
            logger.warning("Previous batch still in flight, skipping tick")
            return None
        try:
            return self.run_once()
        finally:
            self._in_flight.release()

    def _loop(self) -> None:
        next_run = time.monotonic()
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Consumer tick failed: {e}", exc_info=True)

            next_run += self.poll_interval
            delay = next_run - time.monotonic()
            if delay < 0:
                logger.warning(f"Tick overran the {self.poll_interval:g}s poll interval")
                next_run = time.monotonic()
                delay = 0
            self._stop_event.wait(delay)

        logger.info("Consumer loop stopped")

    def start(self) -> None:
        """Start the scheduler thread."""
        if self.is_running:
            logger.warning("Consumer already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="queue-consumer", daemon=True)
        self._thread.start()
        logger.info(
            f"Consumer started on {self.transport.describe()} "
            f"(interval={self.poll_interval:g}s, batch_size={self.batch_size})"
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop after the in-flight batch, if any, completes."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
        logger.info("Consumer stop requested")

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def stats(self) -> Dict[str, Any]:
        data = self._stats.to_dict()
        data["running"] = self.is_running
        return data
