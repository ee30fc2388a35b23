"""
In-memory gateways for tests and dry runs.

Each fake records its calls and supports failure injection per action:

    >>> scm = InMemorySourceControl(files={"src/App.java": "class App {}"})
    >>> scm.fail_on("updateFile", ErrorKind.TRANSPORT_FAILURE, "connection reset")
"""

import hashlib
import logging
import threading
import time
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from ..models import ActionName
from .base import (
    NOTIFICATION_SUCCESS,
    ActionGateway,
    ErrorKind,
    GatewayResult,
    IssueTrackerGateway,
    NotifierGateway,
    SourceControlGateway,
    notification_result,
)

logger = logging.getLogger(__name__)


class _Injectable:
    """Call recording and failure/delay injection shared by the fakes."""

    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self._failures: Dict[str, Tuple[ErrorKind, str, Optional[int]]] = {}
        self._delays: Dict[str, float] = {}
        self._lock = threading.Lock()

    def fail_on(
        self,
        action: Union[str, ActionName],
        kind: ErrorKind = ErrorKind.TRANSPORT_FAILURE,
        reason: str = "injected failure",
        times: Optional[int] = None
    ) -> None:
        """Make ``action`` fail, ``times`` times or until cleared."""
        self._failures[ActionName(action).value] = (kind, reason, times)

    def delay(self, action: Union[str, ActionName], seconds: float) -> None:
        """Sleep before executing ``action``."""
        self._delays[ActionName(action).value] = seconds

    def clear_failures(self) -> None:
        self._failures.clear()
        self._delays.clear()

    def called(self, action: Union[str, ActionName]) -> int:
        name = ActionName(action).value
        return sum(1 for call, _ in self.calls if call == name)

    def _enter(self, action: ActionName, **params: Any) -> Optional[GatewayResult]:
        """Record the call; return an injected failure if one is armed."""
        with self._lock:
            self.calls.append((action.value, params))

        seconds = self._delays.get(action.value)
        if seconds:
            time.sleep(seconds)

        with self._lock:
            failure = self._failures.get(action.value)
            if failure is None:
                return None
            kind, reason, times = failure
            if times is not None:
                if times <= 1:
                    del self._failures[action.value]
                else:
                    self._failures[action.value] = (kind, reason, times - 1)

        logger.debug(f"Injected {kind.value} for {action.value}")
        return GatewayResult.fail(kind, reason)


def _sha(content: str) -> str:
    return hashlib.sha1(content.encode("utf-8")).hexdigest()


class InMemorySourceControl(_Injectable, SourceControlGateway):
    """
    A single repository held in memory.

    Branches are full copies of the default branch's files at creation time.
    """

    def __init__(
        self,
        files: Optional[Dict[str, str]] = None,
        default_branch: str = "main",
        repo: str = "example/service"
    ):
        super().__init__()
        self._default = default_branch
        self.repo = repo
        self.branches: Dict[str, Dict[str, str]] = {default_branch: dict(files or {})}
        self.commits: List[Dict[str, str]] = []
        self.change_requests: List[Dict[str, Any]] = []

    @property
    def default_branch(self) -> str:
        return self._default

    def create_branch(self, name: str) -> GatewayResult:
        injected = self._enter(ActionName.CREATE_BRANCH, name=name)
        if injected:
            return injected
        if name in self.branches:
            return GatewayResult.fail(ErrorKind.ALREADY_EXISTS, f"Reference refs/heads/{name} already exists")

        self.branches[name] = dict(self.branches[self._default])
        return GatewayResult.ok({"branch": name, "base": self._default})

    def get_file(self, path: str, ref: str) -> GatewayResult:
        injected = self._enter(ActionName.GET_FILE, path=path, ref=ref)
        if injected:
            return injected
        if ref not in self.branches:
            return GatewayResult.fail(ErrorKind.NOT_FOUND, f"ref {ref} not found")
        if path not in self.branches[ref]:
            return GatewayResult.fail(ErrorKind.NOT_FOUND, f"{path} not found at {ref}")

        content = self.branches[ref][path]
        return GatewayResult.ok({"path": path, "ref": ref, "sha": _sha(content), "content": content})

    def update_file(self, path: str, branch: str, message: str, content: str) -> GatewayResult:
        injected = self._enter(ActionName.UPDATE_FILE, path=path, branch=branch, message=message)
        if injected:
            return injected
        if branch not in self.branches:
            return GatewayResult.fail(ErrorKind.NOT_FOUND, f"branch {branch} not found")
        if path not in self.branches[branch]:
            return GatewayResult.fail(ErrorKind.NOT_FOUND, f"{path} not found at {branch}")

        self.branches[branch][path] = content
        commit_sha = _sha(f"{branch}:{path}:{content}:{len(self.commits)}")
        self.commits.append({"path": path, "branch": branch, "message": message, "sha": commit_sha})
        return GatewayResult.ok({"path": path, "branch": branch, "commit_sha": commit_sha})

    def open_change_request(self, branch: str, title: str, description: str) -> GatewayResult:
        injected = self._enter(ActionName.OPEN_CHANGE_REQUEST, branch=branch, title=title)
        if injected:
            return injected
        if branch not in self.branches:
            return GatewayResult.fail(ErrorKind.NOT_FOUND, f"branch {branch} not found")

        for existing in self.change_requests:
            if existing["branch"] == branch and existing["state"] == "open":
                return GatewayResult.fail(
                    ErrorKind.ALREADY_EXISTS,
                    f"A pull request already exists for {branch}",
                    payload={"url": existing["url"], "number": existing["number"]},
                )

        number = len(self.change_requests) + 1
        url = f"https://git.example.com/{self.repo}/pull/{number}"
        self.change_requests.append({
            "number": number,
            "url": url,
            "branch": branch,
            "base": self._default,
            "title": title,
            "description": description,
            "state": "open",
        })
        return GatewayResult.ok({"url": url, "number": number})


class InMemoryIssueTracker(_Injectable, IssueTrackerGateway):
    """Issues held in memory, keyed ``<PROJECT>-<n>``."""

    def __init__(self, project_key: str = "OPS"):
        super().__init__()
        self.project_key = project_key
        self.issues: List[Dict[str, str]] = []

    def create_issue(self, summary: str, description: str) -> GatewayResult:
        injected = self._enter(ActionName.CREATE_ISSUE, summary=summary)
        if injected:
            return injected

        issue_key = f"{self.project_key}-{len(self.issues) + 1}"
        self.issues.append({"key": issue_key, "summary": summary, "description": description})
        return GatewayResult.ok({"issue_key": issue_key})


class InMemoryNotifier(_Injectable, NotifierGateway):
    """Records sent notifications; ``failing_recipients`` never receive mail."""

    def __init__(
        self,
        recipients: Iterable[str] = ("oncall@example.com",),
        failing_recipients: Iterable[str] = ()
    ):
        super().__init__()
        self.recipients = list(recipients)
        self.failing_recipients: Set[str] = set(failing_recipients)
        self.sent: List[Dict[str, str]] = []

    def send_notification(self, subject: str, body: str) -> GatewayResult:
        injected = self._enter(ActionName.SEND_NOTIFICATION, subject=subject)
        if injected:
            return injected

        results: Dict[str, str] = {}
        for recipient in self.recipients:
            if recipient in self.failing_recipients:
                results[recipient] = "FAILED: recipient rejected"
                continue
            self.sent.append({"to": recipient, "subject": subject, "body": body})
            results[recipient] = NOTIFICATION_SUCCESS
        return notification_result(results)


def in_memory_gateway(
    files: Optional[Dict[str, str]] = None,
    default_branch: str = "main",
    recipients: Iterable[str] = ("oncall@example.com",)
) -> ActionGateway:
    """Build an ``ActionGateway`` made of in-memory fakes."""
    return ActionGateway(
        source_control=InMemorySourceControl(files=files, default_branch=default_branch),
        issue_tracker=InMemoryIssueTracker(),
        notifier=InMemoryNotifier(recipients=recipients),
    )
