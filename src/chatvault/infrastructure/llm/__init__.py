# src/chatvault/infrastructure/llm/__init__.py
"""
LLM access: providers, router and the async chat client.
"""

from .chat_client import ChatClient
from .providers import LLMProvider, OllamaProvider, OpenAIProvider, ProviderInfo
from .router import ModelConfig, ModelRouter, RouterConfig, TaskType

__all__ = [
    "ChatClient",
    "LLMProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "ProviderInfo",
    "ModelConfig",
    "ModelRouter",
    "RouterConfig",
    "TaskType",
]
