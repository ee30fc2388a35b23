"""
Custom exception types for hotfix-sentinel.

Gateway errors describe why an external action failed. They are normally
carried inside a ``GatewayResult`` and only raised by the low-level
transports; the workflow never lets them escape an action step.
"""
from typing import Optional


class HotfixSentinelError(Exception):
    """Base exception for all hotfix-sentinel errors."""
    pass


# Gateway / transport errors
class GatewayError(HotfixSentinelError):
    """Base exception for action gateway errors."""
    pass


class TransportFailure(GatewayError):
    """Network error, timeout or unexpected response from an external system."""
    pass


class NotFoundError(GatewayError):
    """Referenced file, branch or issue is absent."""
    pass


class AlreadyExistsError(GatewayError):
    """Resource already exists. Treated as success for idempotent actions."""
    pass


class RejectedError(GatewayError):
    """External system refused the request (auth, validation, conflict)."""
    pass


# Classification errors
class ClassificationFailure(HotfixSentinelError):
    """Classifier unreachable or returned an invalid verdict."""
    pass


class FixGenerationError(HotfixSentinelError):
    """Fix author could not produce a modified file."""
    pass


# Workflow errors
class IncidentAbortedError(HotfixSentinelError):
    """Terminal signal that incident handling was aborted."""

    def __init__(
        self,
        incident_id: str,
        action: Optional[str] = None,
        reason: Optional[str] = None
    ):
        self.incident_id = incident_id
        self.action = action
        self.reason = reason
        message = f"Incident {incident_id} handling aborted"
        if action:
            message += f" at {action}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


# Queue errors
class QueueError(HotfixSentinelError):
    """Queue transport failure."""
    pass


# Audit errors
class AuditError(HotfixSentinelError):
    """Audit trail misuse or backend failure."""
    pass


# LLM errors
class LLMError(HotfixSentinelError):
    """LLM provider call failed."""
    pass


class LLMTimeoutError(LLMError):
    """LLM provider call timed out."""

    def __init__(self, timeout: float, provider: str = "LLM"):
        self.timeout = timeout
        self.provider = provider
        super().__init__(f"{provider} request timed out after {timeout}s")


# Configuration errors
class ConfigurationError(HotfixSentinelError):
    """Base exception for configuration errors."""
    pass


class InvalidConfigError(ConfigurationError):
    """Invalid configuration."""
    pass


class MissingConfigError(ConfigurationError):
    """Required configuration missing."""
    pass


__all__ = [
    "HotfixSentinelError",
    "GatewayError",
    "TransportFailure",
    "NotFoundError",
    "AlreadyExistsError",
    "RejectedError",
    "ClassificationFailure",
    "FixGenerationError",
    "IncidentAbortedError",
    "QueueError",
    "AuditError",
    "LLMError",
    "LLMTimeoutError",
    "ConfigurationError",
    "InvalidConfigError",
    "MissingConfigError",
]
