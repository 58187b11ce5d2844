"""LLM provider factory for PaperGraph."""

import logging
from typing import Optional

from config import Settings, settings as default_settings
from llm.base import BaseLLMProvider
from llm.claude_provider import ClaudeProvider
from llm.ollama_provider import OllamaProvider
from llm.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)


def create_llm_provider(
    provider_name: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> BaseLLMProvider:
    """
    Create the configured provider.

    Raises:
        ValueError: unknown provider or missing API key
    """
    settings = settings or default_settings
    provider_name = provider_name or settings.default_llm_provider

    factories = {
        "ollama": lambda: OllamaProvider(
            base_url=settings.ollama_base_url,
            model=settings.default_llm_model,
            timeout=settings.llm_timeout,
        ),
        "openai": lambda: OpenAIProvider(
            api_key=settings.openai_api_key,
            model=_hosted_model(settings, "openai"),
        ),
        "anthropic": lambda: ClaudeProvider(
            api_key=settings.anthropic_api_key,
            model=_hosted_model(settings, "anthropic"),
        ),
    }
    factory = factories.get(provider_name)
    if factory is None:
        raise ValueError(f"Unknown LLM provider: {provider_name}")

    api_keys = {
        "openai": settings.openai_api_key,
        "anthropic": settings.anthropic_api_key,
    }
    if provider_name in api_keys and not api_keys[provider_name]:
        raise ValueError(f"{provider_name.upper()}_API_KEY is not configured")

    provider = factory()
    logger.info(f"Created {provider.name} provider ({provider.default_model})")
    return provider


def _hosted_model(settings: Settings, provider_name: str) -> Optional[str]:
    """Use DEFAULT_LLM_MODEL only when it was chosen for this provider."""
    if settings.default_llm_provider == provider_name:
        return settings.default_llm_model
    return None
