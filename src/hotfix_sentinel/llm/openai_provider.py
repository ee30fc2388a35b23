"""
OpenAI LLM provider.
"""
import logging
from typing import List, Optional

from .base import LLMProvider, LLMMessage, LLMResponse
from ..constants import DEFAULT_OPENAI_MODEL, DEFAULT_LLM_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """OpenAI API provider for GPT models."""

    name = "OpenAI"

    def __init__(
        self,
        model: str = DEFAULT_OPENAI_MODEL,
        api_key: Optional[str] = None,
        timeout: int = DEFAULT_LLM_TIMEOUT_SECONDS,
        max_retries: int = 3
    ):
        super().__init__(model, api_key, timeout=timeout, max_retries=max_retries)

        try:
            import openai
            self.openai = openai
        except ImportError:
            raise ImportError(
                "OpenAI package not installed. Install with: pip install 'hotfix-sentinel[llm]'"
            )

        if api_key:
            self.client = openai.OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        else:
            # Will use OPENAI_API_KEY environment variable
            self.client = openai.OpenAI(timeout=timeout, max_retries=0)

    def complete(
        self,
        messages: List[LLMMessage],
        temperature: float = 0.0,
        max_tokens: Optional[int] = None
    ) -> LLMResponse:
        payload = [{"role": msg.role, "content": msg.content} for msg in messages]

        def call() -> LLMResponse:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=payload,
                temperature=temperature,
                max_tokens=max_tokens,
            )
            return LLMResponse(
                content=response.choices[0].message.content or "",
                model=response.model,
                usage={
                    "prompt_tokens": response.usage.prompt_tokens,
                    "completion_tokens": response.usage.completion_tokens,
                    "total_tokens": response.usage.total_tokens
                },
                finish_reason=response.choices[0].finish_reason
            )

        logger.debug(f"Calling OpenAI API with model {self.model} (timeout: {self.timeout}s)")
        return self._call_with_retry(
            call,
            timeout_errors=(self.openai.APITimeoutError,),
            transient_errors=(
                self.openai.RateLimitError,
                self.openai.APIConnectionError,
                self.openai.InternalServerError,
            ),
            fatal_errors=(self.openai.APIError,),
        )
