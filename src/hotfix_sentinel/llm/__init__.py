"""
LLM providers used by the classifier and the fix author.
"""

__all__ = ['LLMMessage', 'LLMProvider', 'LLMResponse', 'get_llm_provider']

from .base import LLMMessage, LLMProvider, LLMResponse
from .factory import get_llm_provider
