"""
Tests for the audit trail.

Verifies append-only recording, terminal status and persistence.
"""
import pytest

from hotfix_sentinel.audit import (
    AuditEvent,
    AuditEventType,
    AuditTrail,
    InMemoryAuditBackend,
    JsonlAuditBackend,
)
from hotfix_sentinel.exceptions import AuditError
from hotfix_sentinel.models import ActionName, ActionOutcome, TerminalStatus


def _outcome(action: ActionName, success: bool = True, **kwargs) -> ActionOutcome:
    return ActionOutcome(action=action, success=success, **kwargs)


def test_audit_event_round_trip() -> None:
    """Test audit events serialize and deserialize."""
    event = AuditEvent(incident_id="inc-1", event_type=AuditEventType.CLOSED, status="success")

    restored = AuditEvent.from_dict(event.to_dict())

    assert restored == event
    assert event.to_dict()["event_type"] == "closed"


def test_trail_records_outcomes_in_order() -> None:
    """Test outcomes come back in append order."""
    trail = AuditTrail()
    trail.open("inc-1")
    trail.append("inc-1", _outcome(ActionName.CREATE_ISSUE, payload={"issue_key": "OPS-1"}))
    trail.append("inc-1", _outcome(ActionName.SEND_NOTIFICATION))
    trail.close("inc-1", TerminalStatus.SUCCESS)

    outcomes = trail.outcomes("inc-1")

    assert [o.action for o in outcomes] == [ActionName.CREATE_ISSUE, ActionName.SEND_NOTIFICATION]
    assert outcomes[0].payload == {"issue_key": "OPS-1"}
    assert trail.status("inc-1")["status"] == "success"


def test_trail_rejects_append_after_close() -> None:
    """Test a closed trail accepts no further outcomes."""
    trail = AuditTrail()
    trail.open("inc-1")
    trail.close("inc-1", TerminalStatus.ABORTED, reason="createIssue failed: boom")

    with pytest.raises(AuditError, match="closed"):
        trail.append("inc-1", _outcome(ActionName.SEND_NOTIFICATION))


def test_trail_rejects_unknown_incident() -> None:
    """Test appending to a trail that was never opened fails."""
    with pytest.raises(AuditError):
        AuditTrail().append("inc-x", _outcome(ActionName.CREATE_ISSUE))


def test_trail_rejects_duplicate_open() -> None:
    """Test an incident trail can only be opened once."""
    trail = AuditTrail()
    trail.open("inc-1")

    with pytest.raises(AuditError, match="already exists"):
        trail.open("inc-1")


def test_trail_status_in_flight() -> None:
    """Test status is None until the trail is closed."""
    trail = AuditTrail()
    trail.open("inc-1")

    assert trail.status("inc-1") is None


def test_trail_summary_describes_failure() -> None:
    """Test the summary names the failing step and the reason."""
    trail = AuditTrail()
    trail.open("inc-1", incident_key="abc")
    trail.append("inc-1", _outcome(ActionName.CREATE_BRANCH, payload={"branch": "hotfix/abc"}))
    trail.append("inc-1", _outcome(
        ActionName.GET_FILE, success=False, reason="src/App.java not found at main", error_kind="not_found",
    ))
    trail.close(
        "inc-1", TerminalStatus.ABORTED,
        reason="getFile failed: src/App.java not found at main",
        classification="code_fixable",
    )

    summary = trail.summary("inc-1")

    assert summary.splitlines()[0] == "Incident inc-1: ABORTED"
    assert "classification: code_fixable" in summary
    assert "1. createBranch ok: branch=hotfix/abc" in summary
    assert "2. getFile FAILED (not_found): src/App.java not found at main" in summary
    assert "reason: getFile failed" in summary


def test_trail_summary_unknown_incident() -> None:
    """Test summary of an unknown incident is an error."""
    with pytest.raises(AuditError):
        AuditTrail().summary("inc-missing")


def test_incident_ids_in_open_order() -> None:
    """Test incidents are listed in the order they were opened."""
    trail = AuditTrail(InMemoryAuditBackend())
    for incident_id in ("inc-a", "inc-b", "inc-c"):
        trail.open(incident_id)

    assert trail.incident_ids() == ["inc-a", "inc-b", "inc-c"]


def test_jsonl_backend_persists_across_instances(tmp_path) -> None:
    """Test a reopened file trail sees earlier incidents and keeps them closed."""
    path = tmp_path / "audit" / "trail.jsonl"

    first = AuditTrail(JsonlAuditBackend(str(path)))
    first.open("inc-1")
    first.append("inc-1", _outcome(ActionName.CREATE_ISSUE, payload={"issue_key": "OPS-3"}))
    first.close("inc-1", TerminalStatus.SUCCESS)

    second = AuditTrail(JsonlAuditBackend(str(path)))

    assert second.incident_ids() == ["inc-1"]
    assert second.outcomes("inc-1")[0].payload["issue_key"] == "OPS-3"
    with pytest.raises(AuditError):
        second.append("inc-1", _outcome(ActionName.SEND_NOTIFICATION))
    with pytest.raises(AuditError):
        second.open("inc-1")


def test_jsonl_backend_skips_corrupt_lines(tmp_path) -> None:
    """Test unreadable lines are skipped."""
    path = tmp_path / "trail.jsonl"
    backend = JsonlAuditBackend(str(path))
    backend.initialize()
    backend.write_event(AuditEvent(incident_id="inc-1", event_type=AuditEventType.OPENED))
    with path.open("a") as f:
        f.write("{not json\n")
        f.write('{"incident_id": "inc-2", "event_type": "bogus"}\n')

    events = backend.read_events()

    assert len(events) == 1
    assert events[0].incident_id == "inc-1"


def test_jsonl_backend_filters_by_incident(tmp_path) -> None:
    """Test reading events for one incident."""
    backend = JsonlAuditBackend(str(tmp_path / "trail.jsonl"))
    backend.initialize()
    backend.write_event(AuditEvent(incident_id="inc-1", event_type=AuditEventType.OPENED))
    backend.write_event(AuditEvent(incident_id="inc-2", event_type=AuditEventType.OPENED))

    assert [e.incident_id for e in backend.read_events("inc-2")] == ["inc-2"]
