"""
Health check API endpoints.

Provides health, readiness and audit-trail views as plain dictionaries
so any HTTP layer (or the CLI) can serve them.
"""

import time
from typing import Any, Dict, Optional

from ..audit import AuditTrail
from ..config import SentinelConfig
from ..exceptions import InvalidConfigError
from ..queue import QueueConsumer
from ..version import __version__, VERSION_INFO

# Track process start time
_start_time = time.time()


def get_health_status(consumer: Optional[QueueConsumer] = None) -> Dict[str, Any]:
    """
    Get health check status.

    The service is "degraded" when a consumer is supplied but its
    scheduler thread is no longer running.

    Returns:
        Health status dictionary
    """
    uptime = time.time() - _start_time

    status = {
        "status": "healthy",
        "uptime_seconds": round(uptime, 2),
        "service": "hotfix-sentinel",
        "version": __version__,
    }

    if consumer is not None:
        stats = consumer.stats()
        status["consumer"] = stats
        if not stats["running"]:
            status["status"] = "degraded"

    return status


def get_readiness_status(config: SentinelConfig) -> Dict[str, Any]:
    """
    Get readiness check status.

    Ready means the configuration validates and every external
    integration has the settings it needs.

    Returns:
        Readiness status dictionary
    """
    checks: Dict[str, bool] = {}
    problems = []

    try:
        config.validate()
        checks["configuration"] = True
    except InvalidConfigError as e:
        checks["configuration"] = False
        problems.append(str(e))

    missing = config.missing_settings()
    checks["integrations"] = not missing
    if missing:
        problems.append(f"Missing required settings: {', '.join(missing)}")

    is_ready = all(checks.values())

    readiness: Dict[str, Any] = {
        "status": "ready" if is_ready else "not_ready",
        "checks": checks,
        "dry_run": config.dry_run,
    }
    if problems:
        readiness["problems"] = problems
    return readiness


def get_version_info() -> Dict[str, Any]:
    """
    Get version information.

    Returns:
        Version information dictionary
    """
    info = dict(VERSION_INFO)
    info["api_version"] = "v1"
    return info


def list_incidents(trail: AuditTrail, limit: int = 50) -> Dict[str, Any]:
    """Most recent incidents with their terminal status."""
    incident_ids = trail.incident_ids()[-limit:]

    incidents = []
    for incident_id in reversed(incident_ids):
        terminal = trail.status(incident_id)
        incidents.append({
            "incident_id": incident_id,
            "status": terminal["status"] if terminal else "in_progress",
            "reason": terminal["reason"] if terminal else None,
        })

    return {"count": len(incidents), "incidents": incidents}


def get_incident_trail(trail: AuditTrail, incident_id: str) -> Dict[str, Any]:
    """
    Audit trail of one incident.

    Returns:
        Dictionary with the ordered outcomes and a readable summary, or
        ``{"status": "not_found"}`` for an unknown incident
    """
    if not trail.events(incident_id):
        return {"incident_id": incident_id, "status": "not_found"}

    terminal = trail.status(incident_id)
    return {
        "incident_id": incident_id,
        "status": terminal["status"] if terminal else "in_progress",
        "reason": terminal["reason"] if terminal else None,
        "outcomes": [outcome.to_dict() for outcome in trail.outcomes(incident_id)],
        "summary": trail.summary(incident_id),
    }
