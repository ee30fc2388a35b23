"""
Data models for hotfix-sentinel using Pydantic for validation.

Evidence, classifications and action outcomes are frozen once created.
An ``IncidentRecord`` is assembled by the workflow and frozen when the run
terminates.
"""
import hashlib
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import INCIDENT_KEY_LENGTH


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Evidence(BaseModel):
    """
    One unit of log/error text pulled from the queue.

    Attributes:
        data: Opaque log payload
        message_id: Queue-assigned message identifier
        ack_id: Token used to acknowledge the message
        publish_time: When the queue received the message, if known
        attributes: Transport attributes attached to the message
    """
    model_config = ConfigDict(frozen=True)

    data: str
    message_id: str
    ack_id: str
    publish_time: Optional[datetime] = None
    attributes: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_text(cls, data: str, message_id: Optional[str] = None) -> "Evidence":
        """Build evidence for a local payload (tests, CLI dry runs)."""
        message_id = message_id or uuid.uuid4().hex
        return cls(data=data, message_id=message_id, ack_id=f"local-{message_id}")


def incident_key_for(evidence: Sequence[Evidence]) -> str:
    """
    Derive a stable key from the evidence text.

    Redelivered batches carry the same text and therefore the same key,
    which keeps branch names identical across retried runs.
    """
    digest = hashlib.sha1()
    for item in evidence:
        digest.update(item.data.encode("utf-8"))
        digest.update(b"\x00")
    return digest.hexdigest()[:INCIDENT_KEY_LENGTH]


def generate_incident_id() -> str:
    """Generate a unique, locally assigned incident ID."""
    return f"inc-{_utcnow().strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:8]}"


class ClassificationKind(str, Enum):
    """Classification variants."""
    CODE_FIXABLE = "code_fixable"
    CONFIGURATION_ISSUE = "configuration_issue"
    UNSAFE = "unsafe"
    NO_INCIDENT = "no_incident"


class CodeFixable(BaseModel):
    """Issue can be resolved with a minimal change to a single file."""
    model_config = ConfigDict(frozen=True)

    kind: Literal[ClassificationKind.CODE_FIXABLE] = ClassificationKind.CODE_FIXABLE
    file_path_hint: str
    summary: str
    root_cause: str = ""

    @field_validator("file_path_hint")
    @classmethod
    def require_path(cls, v: str) -> str:
        v = v.strip().lstrip("/")
        if not v:
            raise ValueError("file_path_hint cannot be empty")
        return v


class ConfigurationIssue(BaseModel):
    """Configuration or secret problem; no code changes are made."""
    model_config = ConfigDict(frozen=True)

    kind: Literal[ClassificationKind.CONFIGURATION_ISSUE] = ClassificationKind.CONFIGURATION_ISSUE
    summary: str
    root_cause: str = ""


class Unsafe(BaseModel):
    """Issue cannot be safely fixed by automation."""
    model_config = ConfigDict(frozen=True)

    kind: Literal[ClassificationKind.UNSAFE] = ClassificationKind.UNSAFE
    reason: str
    summary: str = ""


class NoIncident(BaseModel):
    """Sentinel verdict: nothing in the evidence requires action."""
    model_config = ConfigDict(frozen=True)

    kind: Literal[ClassificationKind.NO_INCIDENT] = ClassificationKind.NO_INCIDENT
    reason: str = "no incident"


Classification = Union[CodeFixable, ConfigurationIssue, Unsafe, NoIncident]


class ActionName(str, Enum):
    """External actions the workflow can perform."""
    CREATE_BRANCH = "createBranch"
    GET_FILE = "getFile"
    UPDATE_FILE = "updateFile"
    OPEN_CHANGE_REQUEST = "openChangeRequest"
    CREATE_ISSUE = "createIssue"
    SEND_NOTIFICATION = "sendNotification"


SOURCE_CONTROL_ACTIONS = frozenset({
    ActionName.CREATE_BRANCH,
    ActionName.GET_FILE,
    ActionName.UPDATE_FILE,
    ActionName.OPEN_CHANGE_REQUEST,
})

REPORTING_SEQUENCE: Tuple[ActionName, ...] = (
    ActionName.CREATE_ISSUE,
    ActionName.SEND_NOTIFICATION,
)

CODE_FIX_SEQUENCE: Tuple[ActionName, ...] = (
    ActionName.CREATE_BRANCH,
    ActionName.GET_FILE,
    ActionName.UPDATE_FILE,
    ActionName.OPEN_CHANGE_REQUEST,
) + REPORTING_SEQUENCE


def action_sequence_for(classification: Classification) -> Tuple[ActionName, ...]:
    """Return the ordered action sequence defined for a classification."""
    if isinstance(classification, CodeFixable):
        return CODE_FIX_SEQUENCE
    if isinstance(classification, NoIncident):
        return ()
    return REPORTING_SEQUENCE


class ActionOutcome(BaseModel):
    """
    Result of one attempted gateway call.

    Attributes:
        action: Which action was attempted
        parameters: Input parameters (large bodies are truncated by the caller)
        success: Whether the action succeeded
        payload: Success payload (references produced)
        reason: Human-readable failure reason
        error_kind: Failure category reported by the gateway
        warning: Non-fatal warning attached to a successful action
        timestamp: When the outcome was recorded
    """
    model_config = ConfigDict(frozen=True)

    action: ActionName
    parameters: Dict[str, Any] = Field(default_factory=dict)
    success: bool
    payload: Dict[str, Any] = Field(default_factory=dict)
    reason: Optional[str] = None
    error_kind: Optional[str] = None
    warning: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return self.model_dump(mode="json")


class WorkflowState(str, Enum):
    """States of the remediation state machine."""
    CLASSIFYING = "classifying"
    CODE_FIX = "code_fix"
    CONFIG = "config"
    UNSAFE = "unsafe"
    REPORTING = "reporting"
    TERMINATED = "terminated"


class TerminalStatus(str, Enum):
    """How a workflow run terminated."""
    SUCCESS = "success"
    ABORTED = "aborted"


class IncidentRecord(BaseModel):
    """The unit of work for one workflow run, frozen after termination."""
    model_config = ConfigDict(frozen=True)

    incident_id: str
    incident_key: str
    evidence: Tuple[Evidence, ...]
    classification: Optional[Classification] = None
    outcomes: Tuple[ActionOutcome, ...] = ()
    state: WorkflowState = WorkflowState.TERMINATED
    status: TerminalStatus
    started_at: datetime
    completed_at: datetime
    abort_reason: Optional[str] = None
    references: Dict[str, str] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == TerminalStatus.SUCCESS

    @property
    def failed_action(self) -> Optional[ActionName]:
        """The action that aborted the run, if any."""
        if self.outcomes and not self.outcomes[-1].success:
            return self.outcomes[-1].action
        return None

    @property
    def actions(self) -> List[ActionName]:
        return [o.action for o in self.outcomes]

    def is_valid_trace(self) -> bool:
        """
        Check that outcomes form a valid prefix of the action sequence.

        Only the last outcome may be a failure, and a successful run must
        contain the complete sequence.
        """
        if self.classification is None:
            return not self.outcomes
        sequence = action_sequence_for(self.classification)
        if tuple(self.actions) != sequence[:len(self.outcomes)]:
            return False
        if any(not o.success for o in self.outcomes[:-1]):
            return False
        if self.status == TerminalStatus.SUCCESS:
            return len(self.outcomes) == len(sequence) and all(o.success for o in self.outcomes)
        return bool(self.outcomes) and not self.outcomes[-1].success

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return self.model_dump(mode="json")
