"""
Status endpoints for monitoring a running sentinel.
"""

from .health import (
    get_health_status,
    get_incident_trail,
    get_readiness_status,
    get_version_info,
    list_incidents,
)

__all__ = [
    "get_health_status",
    "get_readiness_status",
    "get_version_info",
    "get_incident_trail",
    "list_incidents",
]
