# src/chatvault/infrastructure/llm/providers/__init__.py
"""
LLM provider implementations.
"""

from .base import LLMProvider, ProviderInfo, build_messages
from .openai_provider import OpenAIProvider
from .ollama_provider import OllamaProvider

__all__ = [
    "LLMProvider",
    "ProviderInfo",
    "build_messages",
    "OpenAIProvider",
    "OllamaProvider",
]
