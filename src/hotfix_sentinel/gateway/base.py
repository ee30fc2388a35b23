"""
Action gateway contracts.

Every external action returns a ``GatewayResult`` describing success or
failure. Gateways never retry and never raise across their boundary;
concrete clients raise ``GatewayError`` internally and ``gateway_call``
turns it into a failed result.

Classes:
    ErrorKind: Failure category reported by a gateway
    GatewayResult: Outcome of one gateway call
    SourceControlGateway: Branches, files and change requests
    IssueTrackerGateway: Issue creation
    NotifierGateway: Stakeholder notification
    ActionGateway: Bundle of the three capabilities
"""

import functools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..exceptions import AlreadyExistsError, GatewayError, NotFoundError, RejectedError
from ..security import sanitize_error

logger = logging.getLogger(__name__)

NOTIFICATION_SUCCESS = "SUCCESS"


class ErrorKind(Enum):
    """Failure category of a gateway call."""
    TRANSPORT_FAILURE = "transport_failure"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    REJECTED = "rejected"


@dataclass
class GatewayResult:
    """Result of one gateway call."""

    success: bool
    payload: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    warning: Optional[str] = None

    @classmethod
    def ok(cls, payload: Optional[Dict[str, Any]] = None, warning: Optional[str] = None) -> 'GatewayResult':
        return cls(success=True, payload=dict(payload or {}), warning=warning)

    @classmethod
    def fail(
        cls,
        kind: ErrorKind,
        reason: str,
        payload: Optional[Dict[str, Any]] = None
    ) -> 'GatewayResult':
        return cls(success=False, payload=dict(payload or {}), reason=reason, error_kind=kind)

    @classmethod
    def from_error(cls, error: GatewayError) -> 'GatewayResult':
        """Map a gateway exception onto a failed result."""
        if isinstance(error, NotFoundError):
            kind = ErrorKind.NOT_FOUND
        elif isinstance(error, AlreadyExistsError):
            kind = ErrorKind.ALREADY_EXISTS
        elif isinstance(error, RejectedError):
            kind = ErrorKind.REJECTED
        else:
            kind = ErrorKind.TRANSPORT_FAILURE
        return cls.fail(kind, sanitize_error(error))

    @property
    def already_exists(self) -> bool:
        return not self.success and self.error_kind == ErrorKind.ALREADY_EXISTS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "payload": self.payload,
            "reason": self.reason,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "warning": self.warning,
        }


def gateway_call(func: Callable[..., GatewayResult]) -> Callable[..., GatewayResult]:
    """Convert ``GatewayError`` raised inside a gateway method into a failed result."""
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs) -> GatewayResult:
        try:
            return func(self, *args, **kwargs)
        except GatewayError as e:
            result = GatewayResult.from_error(e)
            logger.warning(
                f"{type(self).__name__}.{func.__name__} failed "
                f"({result.error_kind.value}): {result.reason}"
            )
            return result
    return wrapper


def notification_result(results: Dict[str, str]) -> GatewayResult:
    """
    Summarise a per-recipient delivery map.

    All delivered: success. Some failed: success with a warning.
    None delivered: transport failure.
    """
    if not results:
        return GatewayResult.fail(ErrorKind.REJECTED, "no recipients configured")

    failed = sorted(addr for addr, status in results.items() if status != NOTIFICATION_SUCCESS)
    payload = {"recipients": dict(results)}

    if len(failed) == len(results):
        return GatewayResult.fail(
            ErrorKind.TRANSPORT_FAILURE,
            f"notification failed for all {len(results)} recipient(s)",
            payload=payload
        )
    if failed:
        return GatewayResult.ok(
            payload,
            warning=f"notification failed for {len(failed)} of {len(results)} recipient(s): {', '.join(failed)}"
        )
    return GatewayResult.ok(payload)


class SourceControlGateway(ABC):
    """Source-control capability: branches, files and change requests."""

    @property
    @abstractmethod
    def default_branch(self) -> str:
        """Name of the repository's default branch."""
        pass

    @abstractmethod
    def create_branch(self, name: str) -> GatewayResult:
        """Create ``name`` from the default branch head."""
        pass

    @abstractmethod
    def get_file(self, path: str, ref: str) -> GatewayResult:
        """Read a file. Payload carries ``content``."""
        pass

    @abstractmethod
    def update_file(self, path: str, branch: str, message: str, content: str) -> GatewayResult:
        """Commit new file content to ``branch``."""
        pass

    @abstractmethod
    def open_change_request(self, branch: str, title: str, description: str) -> GatewayResult:
        """Open a change request from ``branch`` into the default branch. Payload carries ``url``."""
        pass


class IssueTrackerGateway(ABC):
    """Issue-tracker capability."""

    @abstractmethod
    def create_issue(self, summary: str, description: str) -> GatewayResult:
        """Create an issue. Payload carries ``issue_key``."""
        pass


class NotifierGateway(ABC):
    """Notification capability."""

    @abstractmethod
    def send_notification(self, subject: str, body: str) -> GatewayResult:
        """Notify all configured recipients. Payload carries ``recipients``."""
        pass


@dataclass
class ActionGateway:
    """The external capabilities a workflow run can use."""

    source_control: SourceControlGateway
    issue_tracker: IssueTrackerGateway
    notifier: NotifierGateway
