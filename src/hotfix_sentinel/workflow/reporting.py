"""
Wording of change requests, issues and notifications.

The action sequence is the same for configuration and unsafe incidents;
only the text produced here differs.
"""
import html
from typing import Dict, Optional

from ..models import Classification, CodeFixable, ConfigurationIssue, Unsafe

ISSUE_PREFIX = {
    "code_fixable": "[Hotfix]",
    "configuration_issue": "[Config]",
    "unsafe": "[Manual action required]",
}


def _headline(classification: Classification) -> str:
    if isinstance(classification, Unsafe):
        return classification.summary or classification.reason
    return getattr(classification, "summary", "") or "Production incident"


def change_request_title(classification: CodeFixable) -> str:
    return f"Hotfix: {classification.summary}"[:250]


def change_request_description(
    incident_id: str,
    classification: CodeFixable,
    path: str,
    fix_summary: str
) -> str:
    """Markdown body of the hotfix change request."""
    return "\n".join([
        "## Incident summary",
        classification.summary,
        "",
        "## Root cause",
        classification.root_cause or "See incident logs.",
        "",
        "## Fix details",
        fix_summary or "Minimal change generated for the failing code path.",
        "",
        "## Impacted components",
        f"- `{path}`",
        "",
        f"Incident: `{incident_id}`",
    ])


def issue_summary(classification: Classification) -> str:
    prefix = ISSUE_PREFIX.get(classification.kind.value, "[Incident]")
    return f"{prefix} {_headline(classification)}"[:255]


def issue_description(
    incident_id: str,
    classification: Classification,
    references: Dict[str, str]
) -> str:
    """Plain-text issue description; blank lines separate paragraphs."""
    paragraphs = [f"Incident {incident_id}: {_headline(classification)}"]

    if isinstance(classification, CodeFixable):
        paragraphs.append(f"Root cause analysis:\n{classification.root_cause or 'not determined'}")
        paragraphs.append(
            f"Fix summary:\nA hotfix for {classification.file_path_hint} was committed "
            f"to branch {references.get('branch', 'n/a')}."
        )
        if references.get("change_request_url"):
            paragraphs.append(f"Change request: {references['change_request_url']}")

    elif isinstance(classification, ConfigurationIssue):
        paragraphs.append(f"Root cause analysis:\n{classification.root_cause or 'not determined'}")
        paragraphs.append(
            "Recommended remediation:\nVerify the affected configuration values, secrets "
            "and environment of the service. No code was changed."
        )

    elif isinstance(classification, Unsafe):
        paragraphs.append(f"Manual intervention required:\n{classification.reason}")
        paragraphs.append("Automation did not modify any code for this incident.")

    return "\n\n".join(paragraphs)


def notification_subject(classification: Classification, issue_key: Optional[str]) -> str:
    if isinstance(classification, CodeFixable):
        label = "Hotfix raised"
    elif isinstance(classification, ConfigurationIssue):
        label = "Configuration incident"
    else:
        label = "Incident requires manual action"
    subject = f"[Production incident] {label}: {_headline(classification)}"
    if issue_key:
        subject += f" ({issue_key})"
    return subject[:200]


def notification_body(
    incident_id: str,
    classification: Classification,
    references: Dict[str, str]
) -> str:
    """HTML notification body."""
    esc = html.escape
    rows = [("Incident", incident_id), ("Classification", classification.kind.value)]

    if isinstance(classification, CodeFixable):
        rows.append(("File", classification.file_path_hint))
    if references.get("issue_key"):
        rows.append(("Issue", references["issue_key"]))

    table = "\n".join(
        f'    <tr><td style="padding: 6px; font-weight: bold;">{esc(k)}</td>'
        f'<td style="padding: 6px;">{esc(v)}</td></tr>'
        for k, v in rows
    )

    sections = [f"<h2>{esc(_headline(classification))}</h2>", f"<table>\n{table}\n</table>"]

    if isinstance(classification, (CodeFixable, ConfigurationIssue)) and classification.root_cause:
        sections.append(f"<p><strong>Root cause:</strong> {esc(classification.root_cause)}</p>")
    if isinstance(classification, Unsafe):
        sections.append(f"<p><strong>Manual intervention required:</strong> {esc(classification.reason)}</p>")
    if isinstance(classification, ConfigurationIssue):
        sections.append("<p>No code was changed. Please review the service configuration and secrets.</p>")

    url = references.get("change_request_url")
    if url:
        sections.append(f'<p><strong>Change request:</strong> <a href="{esc(url)}">{esc(url)}</a></p>')

    body = "\n".join(sections)
    return f'<html>\n<body style="font-family: Arial, sans-serif;">\n{body}\n</body>\n</html>'
