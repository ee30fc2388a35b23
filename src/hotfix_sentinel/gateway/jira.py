"""
Jira Cloud issue-tracker gateway (REST API v3).

Descriptions are sent as Atlassian Document Format; blank-line separated
blocks of the plain-text description become ADF paragraphs.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from ..constants import DEFAULT_HTTP_TIMEOUT_SECONDS, JIRA_ISSUE_TYPE
from ..exceptions import TransportFailure
from .base import GatewayResult, IssueTrackerGateway, gateway_call
from .http import HttpTransport, raise_for_status

logger = logging.getLogger(__name__)


def to_adf(text: str) -> Dict[str, Any]:
    """
    Convert plain text into an ADF document.

    Example:
        >>> to_adf("Root cause\\n\\nDetails")["content"][1]["content"][0]["text"]
        'Details'
    """
    paragraphs: List[Dict[str, Any]] = []
    for block in text.split("\n\n"):
        block = block.strip()
        if not block:
            continue
        content: List[Dict[str, Any]] = []
        for i, line in enumerate(block.split("\n")):
            if i:
                content.append({"type": "hardBreak"})
            if line:
                content.append({"type": "text", "text": line})
        paragraphs.append({"type": "paragraph", "content": content})

    return {"type": "doc", "version": 1, "content": paragraphs}


class JiraIssueTracker(IssueTrackerGateway):
    """
    Creates issues (Story by default) in one Jira project.

    Args:
        base_url: Site URL, e.g. ``https://acme.atlassian.net``
        email: Account email used for basic auth
        api_token: Atlassian API token
        project_key: Project the issues are created in
        epic_key: Optional parent epic for new issues
        issue_type: Issue type name
        timeout: Per-request timeout in seconds
        session: Pre-built ``requests.Session`` (tests)
    """

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        project_key: str,
        epic_key: Optional[str] = None,
        issue_type: str = JIRA_ISSUE_TYPE,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.project_key = project_key
        self.epic_key = epic_key or None
        self.issue_type = issue_type
        self.http = HttpTransport(
            self.base_url,
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            auth=(email, api_token),
            timeout=timeout,
            session=session,
        )

    def build_fields(self, summary: str, description: str) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "project": {"key": self.project_key},
            "summary": summary[:255],
            "description": to_adf(description),
            "issuetype": {"name": self.issue_type},
        }
        if self.epic_key:
            fields["parent"] = {"key": self.epic_key}
        return fields

    @gateway_call
    def create_issue(self, summary: str, description: str) -> GatewayResult:
        response = self.http.send(
            "POST",
            "rest/api/3/issue",
            json={"fields": self.build_fields(summary, description)},
        )
        raise_for_status(response, "create issue")

        body = self.http.json(response, "create issue")
        issue_key = body.get("key")
        if not issue_key:
            raise TransportFailure("create issue response carried no issue key")

        logger.info(f"Created {self.issue_type} {issue_key}")
        return GatewayResult.ok({
            "issue_key": issue_key,
            "url": f"{self.base_url}/browse/{issue_key}",
        })
