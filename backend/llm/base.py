"""
Base LLM Provider Interface

Abstract interface for the text-generation backends (Ollama, OpenAI, Claude).
"""

from abc import ABC, abstractmethod
from typing import Optional


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'ollama', 'openai', 'anthropic')."""
        pass

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Default model to use."""
        pass

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        model: Optional[str] = None,
    ) -> str:
        """
        Generate a response from the LLM.

        Args:
            prompt: User prompt
            system_prompt: Optional system prompt
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature (0-1)
            model: Specific model to use (overrides default)

        Returns:
            Generated text response
        """
        pass

    async def health_check(self) -> bool:
        """Return True when the backend is reachable. Hosted APIs assume yes."""
        return True

    async def close(self) -> None:
        """Release client resources."""
        return None
