# src/chatvault/infrastructure/llm/providers/base.py
"""
LLM Provider abstract base.

One call surface for every backend; concrete providers translate transport
failures into LLMError / LLMTimeoutError.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ProviderInfo:
    """Provider metadata"""
    provider_name: str
    model_name: str
    api_base: Optional[str] = None
    max_tokens: int = 2048


class LLMProvider(ABC):
    """
    LLM provider base class.

    Conventions:
    - OpenAI style message dicts
    - `timeout` kwarg is the whole budget for one call; no hidden shorter default
    - timeouts raise LLMTimeoutError, every other failure raises LLMError
    """

    @abstractmethod
    def invoke(
        self,
        messages: List[Dict[str, str]],
        **kwargs
    ) -> str:
        """
        Blocking completion call.

        Args:
            messages: [{"role": "system", "content": "..."}, ...]
            **kwargs: temperature, max_tokens, timeout

        Returns:
            Response text
        """
        ...

    @abstractmethod
    def check_available(self) -> None:
        """Raise ModelUnavailableError when the endpoint or model is missing."""
        ...

    @property
    @abstractmethod
    def info(self) -> ProviderInfo:
        ...

    def invoke_simple(
        self,
        system_prompt: str,
        user_prompt: str,
        **kwargs
    ) -> str:
        return self.invoke(build_messages(system_prompt, user_prompt), **kwargs)

    def __repr__(self) -> str:
        info = self.info
        return f"{self.__class__.__name__}(model={info.model_name}, provider={info.provider_name})"


def build_messages(
    system_prompt: Optional[str],
    user_prompt: str,
    history: Optional[List[Dict[str, str]]] = None
) -> List[Dict[str, str]]:
    """
    Build a message list: optional system prompt, prior turns, then the prompt.
    """
    messages: List[Dict[str, str]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})

    if history:
        messages.extend(
            {"role": h.get("role", "user"), "content": h.get("content", "")}
            for h in history
            if h.get("content")
        )

    messages.append({"role": "user", "content": user_prompt})

    return messages
