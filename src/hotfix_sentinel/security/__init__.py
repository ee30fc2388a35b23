"""
Security utilities for hotfix-sentinel.

Redaction of credentials in transport errors and neutralisation of log
payloads before they reach a log line or an LLM prompt.
"""

from .sanitization import (
    sanitize_error,
    sanitize_for_llm,
    sanitize_for_logging,
)

__all__ = [
    "sanitize_error",
    "sanitize_for_llm",
    "sanitize_for_logging",
]
