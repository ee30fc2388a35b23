"""
Tests for health check API endpoints.

Verifies health, readiness, version and audit-trail views.
"""

from hotfix_sentinel.api.health import (
    get_health_status,
    get_incident_trail,
    get_readiness_status,
    get_version_info,
    list_incidents,
)
from hotfix_sentinel.config import SentinelConfig
from hotfix_sentinel.models import Evidence
from hotfix_sentinel.queue import InMemoryQueueTransport, QueueConsumer
from hotfix_sentinel.version import __version__

from samples import SECRET_LOG


def test_health_status_returns_healthy():
    """Test health endpoint returns healthy status."""
    health = get_health_status()

    assert health["status"] == "healthy"
    assert health["service"] == "hotfix-sentinel"
    assert health["version"] == __version__
    assert health["uptime_seconds"] >= 0
    assert "consumer" not in health


def test_health_status_degraded_without_running_consumer(workflow):
    """Test a stopped consumer degrades the health status."""
    consumer = QueueConsumer(InMemoryQueueTransport(), workflow)

    health = get_health_status(consumer)

    assert health["status"] == "degraded"
    assert health["consumer"]["running"] is False
    assert health["consumer"]["polls"] == 0


def test_readiness_dry_run_is_ready():
    """Test a dry run needs no integration settings."""
    readiness = get_readiness_status(SentinelConfig(dry_run=True))

    assert readiness["status"] == "ready"
    assert readiness["checks"] == {"configuration": True, "integrations": True}
    assert readiness["dry_run"] is True
    assert "problems" not in readiness


def test_readiness_reports_missing_settings():
    """Test missing integration settings make the service not ready."""
    readiness = get_readiness_status(SentinelConfig())

    assert readiness["status"] == "not_ready"
    assert readiness["checks"]["configuration"] is True
    assert readiness["checks"]["integrations"] is False
    assert any("github_token" in p for p in readiness["problems"])


def test_readiness_reports_invalid_values():
    readiness = get_readiness_status(SentinelConfig(dry_run=True, poll_interval=0))

    assert readiness["checks"]["configuration"] is False
    assert "poll_interval must be positive" in readiness["problems"][0]


def test_version_info():
    """Test version endpoint returns version information."""
    info = get_version_info()

    assert info["version"] == __version__
    assert info["api_version"] == "v1"


def test_list_incidents_newest_first(workflow):
    first = workflow.run([Evidence.from_text(SECRET_LOG)])
    second = workflow.run([Evidence.from_text("INFO nothing to see")])

    listing = list_incidents(workflow.audit_trail)

    assert listing["count"] == 2
    assert [i["incident_id"] for i in listing["incidents"]] == [second.incident_id, first.incident_id]
    assert listing["incidents"][0]["status"] == "success"


def test_list_incidents_limit(workflow):
    for _ in range(3):
        workflow.run([Evidence.from_text("INFO ok")])

    assert list_incidents(workflow.audit_trail, limit=2)["count"] == 2


def test_incident_trail(workflow):
    record = workflow.run([Evidence.from_text(SECRET_LOG)])

    view = get_incident_trail(workflow.audit_trail, record.incident_id)

    assert view["status"] == "success"
    assert [o["action"] for o in view["outcomes"]] == ["createIssue", "sendNotification"]
    assert view["summary"].startswith(f"Incident {record.incident_id}: SUCCESS")


def test_unknown_incident_trail(workflow):
    view = get_incident_trail(workflow.audit_trail, "inc-missing")

    assert view == {"incident_id": "inc-missing", "status": "not_found"}
