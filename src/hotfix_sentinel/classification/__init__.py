"""
Incident classification and fix authoring.
"""

from .base import IncidentClassifier
from .fixer import CallableFixAuthor, FixAuthor, FixProposal, LLMFixAuthor
from .llm_classifier import LLMClassifier
from .rules import RuleBasedClassifier

__all__ = [
    "IncidentClassifier",
    "RuleBasedClassifier",
    "LLMClassifier",
    "FixAuthor",
    "FixProposal",
    "CallableFixAuthor",
    "LLMFixAuthor",
]
