"""
Base LLM provider interface.
"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel

from ..exceptions import LLMError, LLMTimeoutError
from ..retry import calculate_backoff
from ..security import sanitize_error

logger = logging.getLogger(__name__)


class LLMMessage(BaseModel):
    """A message in an LLM conversation."""
    role: str  # "system", "user", or "assistant"
    content: str


class LLMResponse(BaseModel):
    """Response from an LLM."""
    content: str
    model: str
    usage: Optional[Dict[str, int]] = None
    finish_reason: Optional[str] = None


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Callers are responsible for sanitizing and truncating evidence before it
    is placed in a message.
    """

    name = "LLM"

    def __init__(self, model: str, api_key: Optional[str] = None, timeout: float = 30, max_retries: int = 3):
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries

    @abstractmethod
    def complete(
        self,
        messages: List[LLMMessage],
        temperature: float = 0.0,
        max_tokens: Optional[int] = None
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Raises:
            LLMTimeoutError: If every attempt timed out
            LLMError: If the call failed
        """
        pass

    def _call_with_retry(
        self,
        call: Callable[[], LLMResponse],
        timeout_errors: Tuple[Type[Exception], ...],
        transient_errors: Tuple[Type[Exception], ...],
        fatal_errors: Tuple[Type[Exception], ...] = ()
    ) -> LLMResponse:
        """Run ``call``, retrying timeouts and transient SDK errors with backoff."""
        for attempt in range(self.max_retries):
            last_attempt = attempt + 1 >= self.max_retries
            try:
                return call()
            except timeout_errors as e:
                logger.error(f"{self.name} API timeout: {sanitize_error(e)}")
                if last_attempt:
                    raise LLMTimeoutError(timeout=self.timeout, provider=self.name) from e
            except transient_errors as e:
                logger.error(f"{self.name} API transient error: {sanitize_error(e)}")
                if last_attempt:
                    raise LLMError(
                        f"{self.name} API failed after {self.max_retries} attempts: {sanitize_error(e)}"
                    ) from e
            except fatal_errors as e:
                raise LLMError(f"{self.name} API error: {sanitize_error(e)}") from e

            wait_time = calculate_backoff(attempt, 2.0, 1.0, 30.0, jitter=True)
            logger.info(f"Retrying {self.name} after {wait_time:.1f}s (attempt {attempt + 1}/{self.max_retries})")
            time.sleep(wait_time)

        raise LLMError(f"{self.name} called with max_retries={self.max_retries}")

    def create_system_message(self, content: str) -> LLMMessage:
        return LLMMessage(role="system", content=content)

    def create_user_message(self, content: str) -> LLMMessage:
        return LLMMessage(role="user", content=content)

    def describe(self) -> Dict[str, Any]:
        return {"provider": self.name, "model": self.model, "timeout": self.timeout}
