"""
Remediation workflow state machine and reporting text.
"""

from .engine import RemediationWorkflow

__all__ = ["RemediationWorkflow"]
