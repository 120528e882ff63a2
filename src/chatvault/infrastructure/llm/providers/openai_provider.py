# src/chatvault/infrastructure/llm/providers/openai_provider.py
"""
OpenAI-compatible provider.

Works against api.openai.com and against local servers that expose /v1
(llama-server, vLLM, LM Studio) via `base_url`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI

from chatvault.core.errors import LLMError, LLMTimeoutError, ModelUnavailableError

from .base import LLMProvider, ProviderInfo

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """
    OpenAI compatible LLM provider.

    The client is built with `max_retries=0`. Each call passes its own
    `timeout` to httpx, which applies it per phase (connect, read, write and
    pool wait), not as a deadline for the whole request.
    """

    ALLOWED_PARAMS = {
        "temperature", "top_p", "presence_penalty",
        "frequency_penalty", "max_tokens", "timeout"
    }

    def __init__(
        self,
        api_key: str,
        model_name: str,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        max_tokens: int = 2048,
    ):
        if not api_key:
            raise ValueError("API key must not be empty")

        self.model_name = model_name
        self.base_url = base_url
        self.timeout = timeout
        self.max_tokens = max_tokens

        client_kwargs: Dict[str, Any] = {
            "api_key": api_key,
            "max_retries": 0,
            "timeout": timeout,
        }
        if base_url:
            client_kwargs["base_url"] = base_url

        self.client = OpenAI(**client_kwargs)
        logger.info("OpenAIProvider ready: %s", self)

    def invoke(
        self,
        messages: List[Dict[str, str]],
        **kwargs
    ) -> str:
        extra_params = {
            k: v for k, v in kwargs.items()
            if k in self.ALLOWED_PARAMS and v is not None
        }
        timeout = extra_params.pop("timeout", self.timeout)
        extra_params.setdefault("max_tokens", self.max_tokens)

        try:
            response = self.client.chat.completions.create(
                model=self.model_name,
                messages=messages,
                timeout=timeout,
                **extra_params,
            )
        except openai.APITimeoutError as e:
            raise LLMTimeoutError(
                message=f"model call timed out after {timeout}s",
                context={"model": self.model_name},
            ) from e
        except openai.NotFoundError as e:
            raise ModelUnavailableError(
                message=f"model not found: {self.model_name}",
                context={"base_url": self.base_url},
            ) from e
        except openai.OpenAIError as e:
            raise LLMError(message=f"model call failed: {e}", context={"model": self.model_name}) from e

        if response.choices and response.choices[0].message:
            content = response.choices[0].message.content
            return content.strip() if content else ""
        return ""

    def check_available(self) -> None:
        try:
            self.client.models.list(timeout=10)
        except openai.OpenAIError as e:
            raise ModelUnavailableError(
                message=f"model endpoint unavailable: {e}",
                context={"base_url": self.base_url, "model": self.model_name},
            ) from e

    @property
    def info(self) -> ProviderInfo:
        return ProviderInfo(
            provider_name="openai-compatible" if self.base_url else "openai",
            model_name=self.model_name,
            api_base=self.base_url or "https://api.openai.com",
            max_tokens=self.max_tokens,
        )
