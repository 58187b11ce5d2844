"""LLM providers and the structured completion capability for PaperGraph."""

from .base import BaseLLMProvider
from .claude_provider import ClaudeProvider
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider
from .factory import create_llm_provider
from .structured import StructuredCompletion, parse_json_response

__all__ = [
    "BaseLLMProvider",
    "ClaudeProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "create_llm_provider",
    "StructuredCompletion",
    "parse_json_response",
]
