# src/chatvault/infrastructure/llm/providers/ollama_provider.py
"""
Ollama local model provider.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import requests

from chatvault.core.errors import LLMError, LLMTimeoutError, ModelUnavailableError

from .base import LLMProvider, ProviderInfo

logger = logging.getLogger(__name__)


class OllamaProvider(LLMProvider):
    """
    Ollama provider over /api/generate.

    `timeout` is passed straight to requests for both connect and read, so a
    long master-memory merge is not cut short by a library default.
    """

    DEFAULT_MODEL = "llama3"
    DEFAULT_BASE_URL = "http://localhost:11434"

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 300.0,
        max_tokens: int = 2048,
    ):
        self.model_name = model_name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_tokens = max_tokens
        logger.info("OllamaProvider ready: %s", self)

    def _build_prompt(self, messages: List[Dict[str, str]]) -> str:
        """
        Flatten messages into one prompt; /api/generate takes a single string.
        """
        parts = []
        for msg in messages:
            role = msg.get("role", "user")
            content = msg.get("content", "")

            if role == "system":
                parts.append(f"System: {content}")
            elif role == "assistant":
                parts.append(f"Assistant: {content}")
            else:
                parts.append(f"User: {content}")

        parts.append("Assistant:")
        return "\n\n".join(parts)

    def invoke(
        self,
        messages: List[Dict[str, str]],
        **kwargs
    ) -> str:
        timeout = kwargs.get("timeout") or self.timeout
        payload: Dict[str, Any] = {
            "model": self.model_name,
            "prompt": self._build_prompt(messages),
            "stream": False,
            "options": {
                "temperature": kwargs.get("temperature", 0.2),
                "num_predict": kwargs.get("max_tokens") or self.max_tokens,
            },
        }

        try:
            resp = requests.post(
                f"{self.base_url}/api/generate",
                json=payload,
                timeout=timeout,
            )
            if resp.status_code == 404:
                raise ModelUnavailableError(
                    message=f"model not found: {self.model_name}",
                    context={"base_url": self.base_url},
                )
            resp.raise_for_status()
            data = resp.json()
        except requests.Timeout as e:
            raise LLMTimeoutError(
                message=f"model call timed out after {timeout}s",
                context={"model": self.model_name},
            ) from e
        except (requests.RequestException, ValueError) as e:
            raise LLMError(message=f"Ollama call failed: {e}", context={"model": self.model_name}) from e

        return str(data.get("response", "")).strip()

    def check_available(self) -> None:
        try:
            resp = requests.get(f"{self.base_url}/api/tags", timeout=5)
            resp.raise_for_status()
            names = {m.get("name", "").split(":")[0] for m in resp.json().get("models", [])}
        except (requests.RequestException, ValueError) as e:
            raise ModelUnavailableError(
                message=f"cannot reach Ollama at {self.base_url}: {e}",
                context={"base_url": self.base_url},
            ) from e
        if self.model_name.split(":")[0] not in names:
            raise ModelUnavailableError(
                message=f"model not pulled: {self.model_name}",
                context={"available": sorted(names)},
            )

    @property
    def info(self) -> ProviderInfo:
        return ProviderInfo(
            provider_name="ollama",
            model_name=self.model_name,
            api_base=self.base_url,
            max_tokens=self.max_tokens,
        )
