"""
Anthropic LLM provider.
"""
import logging
from typing import List, Optional

from .base import LLMProvider, LLMMessage, LLMResponse
from ..constants import DEFAULT_ANTHROPIC_MODEL, DEFAULT_LLM_MAX_TOKENS, DEFAULT_LLM_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class AnthropicProvider(LLMProvider):
    """Anthropic API provider for Claude models."""

    name = "Anthropic"

    def __init__(
        self,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        api_key: Optional[str] = None,
        timeout: int = DEFAULT_LLM_TIMEOUT_SECONDS,
        max_retries: int = 3
    ):
        super().__init__(model, api_key, timeout=timeout, max_retries=max_retries)

        try:
            import anthropic
            self.anthropic = anthropic
        except ImportError:
            raise ImportError(
                "Anthropic package not installed. Install with: pip install 'hotfix-sentinel[llm]'"
            )

        # SDK retries are disabled; _call_with_retry owns the policy
        if api_key:
            self.client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)
        else:
            # Will use ANTHROPIC_API_KEY environment variable
            self.client = anthropic.Anthropic(timeout=timeout, max_retries=0)

    def complete(
        self,
        messages: List[LLMMessage],
        temperature: float = 0.0,
        max_tokens: Optional[int] = None
    ) -> LLMResponse:
        # Anthropic takes the system prompt separately
        system_message = None
        conversation = []
        for msg in messages:
            if msg.role == "system":
                system_message = msg.content
            else:
                conversation.append({"role": msg.role, "content": msg.content})

        kwargs = {
            "model": self.model,
            "messages": conversation,
            "temperature": temperature,
            "max_tokens": max_tokens or DEFAULT_LLM_MAX_TOKENS,
        }
        if system_message:
            kwargs["system"] = system_message

        def call() -> LLMResponse:
            response = self.client.messages.create(**kwargs)
            text = "".join(
                block.text for block in response.content if getattr(block, "type", "text") == "text"
            )
            return LLMResponse(
                content=text,
                model=response.model,
                usage={
                    "input_tokens": response.usage.input_tokens,
                    "output_tokens": response.usage.output_tokens,
                    "total_tokens": response.usage.input_tokens + response.usage.output_tokens
                },
                finish_reason=response.stop_reason
            )

        logger.debug(f"Calling Anthropic API with model {self.model} (timeout: {self.timeout}s)")
        return self._call_with_retry(
            call,
            timeout_errors=(self.anthropic.APITimeoutError,),
            transient_errors=(
                self.anthropic.RateLimitError,
                self.anthropic.APIConnectionError,
                self.anthropic.InternalServerError,
            ),
            fatal_errors=(self.anthropic.APIError,),
        )
