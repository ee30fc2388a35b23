"""
Builds the LLM provider behind ``classifier = "llm"`` and the LLM fix author.

SDK modules are imported only for the provider actually configured, so a
rules-only deployment does not need ``openai`` or ``anthropic`` installed.
"""
import importlib
import logging
from typing import Dict, Optional, Tuple

from ..constants import DEFAULT_ANTHROPIC_MODEL, DEFAULT_LLM_TIMEOUT_SECONDS, DEFAULT_OPENAI_MODEL
from .base import LLMProvider

logger = logging.getLogger(__name__)

# name -> (module, class, default model)
PROVIDERS: Dict[str, Tuple[str, str, str]] = {
    "openai": (".openai_provider", "OpenAIProvider", DEFAULT_OPENAI_MODEL),
    "anthropic": (".anthropic_provider", "AnthropicProvider", DEFAULT_ANTHROPIC_MODEL),
}


def get_llm_provider(
    provider_name: str,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    timeout: int = DEFAULT_LLM_TIMEOUT_SECONDS
) -> Optional[LLMProvider]:
    """
    Provider for the ``[llm]`` config section, or None for "none".

    Args:
        provider_name: "openai", "anthropic" or "none" (case-insensitive)
        model: Overrides the provider's default model
        api_key: Falls back to the SDK's own environment variable
        timeout: Seconds per completion request

    Raises:
        ValueError: Unknown provider name
        ImportError: The provider's SDK is not installed
    """
    provider_name = (provider_name or "none").lower()

    if provider_name == "none":
        logger.info("LLM provider disabled")
        return None

    if provider_name not in PROVIDERS:
        raise ValueError(
            f"Unknown LLM provider: {provider_name}. "
            f"Supported providers: {', '.join(sorted(PROVIDERS))}, none"
        )

    module_name, class_name, default_model = PROVIDERS[provider_name]
    provider_class = getattr(importlib.import_module(module_name, __package__), class_name)
    model = model or default_model
    logger.info(f"Classifying and authoring fixes with {provider_name} model {model}")
    return provider_class(model=model, api_key=api_key, timeout=timeout)
