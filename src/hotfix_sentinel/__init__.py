"""
hotfix-sentinel: automated incident remediation orchestrator.

Pulls production error logs from a queue, classifies each batch, and
opens a hotfix pull request, a tracking issue and an email notification
according to the verdict.
"""
from .version import __version__, VERSION_INFO, get_version, get_version_info
from .logging_context import (
    get_logger,
    set_context,
    get_context,
    clear_context,
    LoggingContext,
)

__all__ = [
    "__version__",
    "VERSION_INFO",
    "get_version",
    "get_version_info",
    "get_logger",
    "set_context",
    "get_context",
    "clear_context",
    "LoggingContext",
]
