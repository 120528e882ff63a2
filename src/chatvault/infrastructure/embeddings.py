from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import List, Optional

import openai
from openai import OpenAI

from chatvault.config.settings import EmbeddingSettings
from chatvault.core.errors import EmbeddingError

logger = logging.getLogger(__name__)

MAX_EMBED_CHARS = 24000


@dataclass(frozen=True)
class EmbeddingConfig:
    model: str = "all-MiniLM-L6-v2"
    api_key_env: str = "EMBEDDING_API_KEY"
    base_url: Optional[str] = "http://127.0.0.1:8081/v1"
    timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: EmbeddingSettings) -> "EmbeddingConfig":
        return cls(model=settings.model, api_key_env=settings.api_key_env, base_url=settings.base_url)


class EmbeddingProvider:
    def embed(self, text: str) -> List[float]:
        """Fixed-length vector for `text`; raises EmbeddingError on failure."""
        raise NotImplementedError


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """/v1/embeddings on OpenAI or any compatible local server."""

    def __init__(self, config: Optional[EmbeddingConfig] = None):
        self.config = config or EmbeddingConfig()
        api_key = os.getenv(self.config.api_key_env, "")
        if not api_key and self.config.base_url:
            api_key = "local"
        if not api_key:
            raise EmbeddingError(f"Missing API key env: {self.config.api_key_env}")

        client_kwargs = {"api_key": api_key, "max_retries": 0, "timeout": self.config.timeout_seconds}
        if self.config.base_url:
            client_kwargs["base_url"] = self.config.base_url
        self._client = OpenAI(**client_kwargs)

    def embed(self, text: str) -> List[float]:
        s = (text or "").strip()
        if not s:
            raise EmbeddingError("cannot embed empty text")
        if len(s) > MAX_EMBED_CHARS:
            s = s[:MAX_EMBED_CHARS]
        try:
            resp = self._client.embeddings.create(model=self.config.model, input=s)
        except openai.OpenAIError as e:
            raise EmbeddingError(f"embedding call failed: {e}", context={"model": self.config.model}) from e
        if not getattr(resp, "data", None):
            raise EmbeddingError("embedding response had no data")
        vec = getattr(resp.data[0], "embedding", None)
        if not isinstance(vec, list) or not vec:
            raise EmbeddingError("embedding response had no vector")
        return [float(x) for x in vec]


class EmbeddingService:
    """
    Fail-closed wrapper: callers get `[]` (the "no vector" sentinel) instead
    of an exception.
    """

    def __init__(self, provider: Optional[EmbeddingProvider]):
        self.provider = provider

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    def embed_or_empty(self, text: str) -> List[float]:
        if self.provider is None:
            return []
        try:
            return self.provider.embed(text)
        except EmbeddingError as e:
            logger.warning("embedding failed, storing without vector: %s", e)
            return []

    async def aembed_or_empty(self, text: str) -> List[float]:
        return await asyncio.to_thread(self.embed_or_empty, text)


def build_embedding_service(settings: EmbeddingSettings) -> EmbeddingService:
    if not settings.enabled:
        return EmbeddingService(None)
    try:
        return EmbeddingService(OpenAIEmbeddingProvider(EmbeddingConfig.from_settings(settings)))
    except EmbeddingError as e:
        logger.warning("embeddings disabled: %s", e)
        return EmbeddingService(None)


__all__ = [
    "EmbeddingConfig",
    "EmbeddingProvider",
    "EmbeddingService",
    "OpenAIEmbeddingProvider",
    "build_embedding_service",
]
