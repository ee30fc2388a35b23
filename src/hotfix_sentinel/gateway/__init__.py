"""
Action gateways: source control, issue tracker and notifier.
"""

from .base import (
    ActionGateway,
    ErrorKind,
    GatewayResult,
    IssueTrackerGateway,
    NotifierGateway,
    SourceControlGateway,
    notification_result,
)
from .github import GitHubSourceControl
from .jira import JiraIssueTracker
from .memory import (
    InMemoryIssueTracker,
    InMemoryNotifier,
    InMemorySourceControl,
    in_memory_gateway,
)
from .smtp import SmtpNotifier

__all__ = [
    "ActionGateway",
    "ErrorKind",
    "GatewayResult",
    "IssueTrackerGateway",
    "NotifierGateway",
    "SourceControlGateway",
    "notification_result",
    "GitHubSourceControl",
    "JiraIssueTracker",
    "SmtpNotifier",
    "InMemoryIssueTracker",
    "InMemoryNotifier",
    "InMemorySourceControl",
    "in_memory_gateway",
]
