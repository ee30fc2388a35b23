"""
Append-only audit trail of workflow runs.

Each incident gets an ``opened`` event, one ``outcome`` event per attempted
action and a ``closed`` event carrying the terminal status. Events are
never rewritten; the trail answers "what was done" for any incident,
including the exact failing step.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import json
import logging
import threading
from pathlib import Path

from ..exceptions import AuditError
from ..models import ActionOutcome, TerminalStatus

logger = logging.getLogger(__name__)


class AuditEventType(Enum):
    """Types of audit events."""
    OPENED = "opened"
    OUTCOME = "outcome"
    CLOSED = "closed"


@dataclass
class AuditEvent:
    """
    Audit event data class.

    Attributes:
        incident_id: Incident the event belongs to
        event_type: Type of event
        timestamp: Event timestamp (ISO 8601)
        outcome: Serialized ``ActionOutcome`` for outcome events
        status: Terminal status for closed events
        reason: Abort reason for closed events
        details: Additional event details
    """
    incident_id: str
    event_type: AuditEventType
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    outcome: Optional[Dict[str, Any]] = None
    status: Optional[str] = None
    reason: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = asdict(self)
        data["event_type"] = self.event_type.value
        return data

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEvent':
        data = dict(data)
        data["event_type"] = AuditEventType(data["event_type"])
        return cls(**data)


class AuditBackend(ABC):
    """Abstract base class for audit backends."""

    @abstractmethod
    def initialize(self) -> None:
        """Initialize the backend."""
        pass

    @abstractmethod
    def write_event(self, event: AuditEvent) -> None:
        """Append an audit event."""
        pass

    @abstractmethod
    def read_events(self, incident_id: Optional[str] = None) -> List[AuditEvent]:
        """Read events in write order, optionally for one incident."""
        pass

    def close(self) -> None:
        """Release backend resources."""
        pass


class InMemoryAuditBackend(AuditBackend):
    """Process-local audit backend."""

    def __init__(self):
        self._events: List[AuditEvent] = []
        self._lock = threading.Lock()

    def initialize(self) -> None:
        pass

    def write_event(self, event: AuditEvent) -> None:
        with self._lock:
            self._events.append(event)

    def read_events(self, incident_id: Optional[str] = None) -> List[AuditEvent]:
        with self._lock:
            return [e for e in self._events if incident_id is None or e.incident_id == incident_id]


class JsonlAuditBackend(AuditBackend):
    """
    File-based audit backend.

    Stores one JSON object per line; the file is only ever appended to.
    """

    def __init__(self, file_path: str = "hotfix-sentinel-audit.jsonl"):
        self.file_path = Path(file_path)
        self._lock = threading.Lock()

    def initialize(self) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)

        if not self.file_path.exists():
            self.file_path.touch()

        logger.info(f"File audit backend initialized: {self.file_path}")

    def write_event(self, event: AuditEvent) -> None:
        try:
            with self._lock, self.file_path.open("a") as f:
                f.write(event.to_json() + "\n")
        except OSError as e:
            logger.error(f"Failed to write audit event: {e}")
            raise AuditError(f"Failed to write audit event to {self.file_path}: {e}") from e

    def read_events(self, incident_id: Optional[str] = None) -> List[AuditEvent]:
        events = []

        if not self.file_path.exists():
            return events

        try:
            with self._lock, self.file_path.open("r") as f:
                for line in f:
                    if not line.strip():
                        continue

                    try:
                        data = json.loads(line)
                        if incident_id and data.get("incident_id") != incident_id:
                            continue
                        events.append(AuditEvent.from_dict(data))
                    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                        logger.warning(f"Skipping invalid audit event: {e}")
                        continue

        except OSError as e:
            logger.error(f"Failed to read audit events: {e}")
            raise AuditError(f"Failed to read audit file {self.file_path}: {e}") from e

        return events


class AuditTrail:
    """
    Per-incident append-only log of action outcomes.

    Usage:
        trail = AuditTrail(JsonlAuditBackend("audit.jsonl"))
        trail.open("inc-1")
        trail.append("inc-1", outcome)
        trail.close("inc-1", TerminalStatus.SUCCESS)
        print(trail.summary("inc-1"))
    """

    def __init__(self, backend: Optional[AuditBackend] = None):
        self.backend = backend or InMemoryAuditBackend()
        self.backend.initialize()
        self._lock = threading.Lock()
        self._open: Dict[str, bool] = {}

        # Incidents already recorded by a persistent backend stay closed to appends
        for event in self.backend.read_events():
            if event.event_type == AuditEventType.OPENED:
                self._open[event.incident_id] = True
            elif event.event_type == AuditEventType.CLOSED:
                self._open[event.incident_id] = False

    def open(self, incident_id: str, **details: Any) -> None:
        """
        Start a new, empty trail.

        Raises:
            AuditError: If a trail for ``incident_id`` already exists
        """
        with self._lock:
            if incident_id in self._open:
                raise AuditError(f"Audit trail for {incident_id} already exists")
            self._open[incident_id] = True
        self.backend.write_event(
            AuditEvent(incident_id=incident_id, event_type=AuditEventType.OPENED, details=details)
        )

    def append(self, incident_id: str, outcome: ActionOutcome) -> None:
        """
        Record one action outcome.

        Raises:
            AuditError: If the trail is unknown or already closed
        """
        self._require_open(incident_id)
        self.backend.write_event(
            AuditEvent(
                incident_id=incident_id,
                event_type=AuditEventType.OUTCOME,
                outcome=outcome.to_dict(),
            )
        )

    def close(
        self,
        incident_id: str,
        status: TerminalStatus,
        reason: Optional[str] = None,
        **details: Any
    ) -> None:
        """Record the terminal status; no further appends are accepted."""
        self._require_open(incident_id)
        with self._lock:
            self._open[incident_id] = False
        self.backend.write_event(
            AuditEvent(
                incident_id=incident_id,
                event_type=AuditEventType.CLOSED,
                status=status.value,
                reason=reason,
                details=details,
            )
        )

    def _require_open(self, incident_id: str) -> None:
        with self._lock:
            state = self._open.get(incident_id)
        if state is None:
            raise AuditError(f"No audit trail open for {incident_id}")
        if not state:
            raise AuditError(f"Audit trail for {incident_id} is closed")

    def events(self, incident_id: str) -> List[AuditEvent]:
        return self.backend.read_events(incident_id)

    def outcomes(self, incident_id: str) -> Tuple[ActionOutcome, ...]:
        """Outcomes recorded for ``incident_id``, in order."""
        return tuple(
            ActionOutcome.model_validate(event.outcome)
            for event in self.events(incident_id)
            if event.event_type == AuditEventType.OUTCOME and event.outcome is not None
        )

    def incident_ids(self) -> List[str]:
        """Incident ids in the order their trails were opened."""
        return [
            event.incident_id
            for event in self.backend.read_events()
            if event.event_type == AuditEventType.OPENED
        ]

    def status(self, incident_id: str) -> Optional[Dict[str, Any]]:
        """Terminal status and reason, or None while the run is in flight."""
        for event in reversed(self.events(incident_id)):
            if event.event_type == AuditEventType.CLOSED:
                return {"status": event.status, "reason": event.reason, "timestamp": event.timestamp}
        return None

    def summary(self, incident_id: str) -> str:
        """
        Human-readable account of what was done for an incident.

        Raises:
            AuditError: If no trail exists for ``incident_id``
        """
        events = self.events(incident_id)
        if not events:
            raise AuditError(f"No audit trail for {incident_id}")

        terminal = self.status(incident_id)
        header = f"Incident {incident_id}: {terminal['status'].upper() if terminal else 'IN PROGRESS'}"
        lines = [header]

        for event in events:
            if event.details.get("classification"):
                lines.append(f"  classification: {event.details['classification']}")
                break

        outcomes = self.outcomes(incident_id)
        if not outcomes:
            lines.append("  no actions taken")

        for i, outcome in enumerate(outcomes, 1):
            if outcome.success:
                refs = ", ".join(
                    f"{k}={v}" for k, v in outcome.payload.items()
                    if k in ("branch", "path", "url", "issue_key", "commit_sha")
                )
                line = f"  {i}. {outcome.action.value} ok"
                if refs:
                    line += f": {refs}"
                if outcome.warning:
                    line += f" (warning: {outcome.warning})"
            else:
                kind = f" ({outcome.error_kind})" if outcome.error_kind else ""
                line = f"  {i}. {outcome.action.value} FAILED{kind}: {outcome.reason}"
            lines.append(line)

        if terminal and terminal.get("reason"):
            lines.append(f"  reason: {terminal['reason']}")

        return "\n".join(lines)
