"""
Test doubles for the model boundary. No network.
"""

from __future__ import annotations

import json
import threading
import zlib
from typing import Any, Callable, Dict, List, Tuple, Union

from chatvault.core.errors import EmbeddingError, ModelUnavailableError
from chatvault.infrastructure.embeddings import EmbeddingProvider
from chatvault.infrastructure.llm.providers.base import LLMProvider, ProviderInfo

Reply = Union[str, BaseException, Callable[[str], str]]

# substrings that identify each prompt family
MEMORY_FILTER = "memory filter"
ENTITY_EXTRACTION = "extracting entities"
ENTITY_SUMMARY = "updating an entity profile"
SESSION_SUMMARY = "Extract a user profile summary"
MASTER_INITIAL = "Create a MASTER MEMORY about this user from the conversation summary below"
MASTER_INCREMENTAL = "Update this master memory"
MASTER_BATCH = "Create a MASTER MEMORY about this user from the conversation summaries below"
MASTER_MERGE = "Merge these partial summaries"
RAG_CHAT = "answers using ONLY the provided context"


def as_json(obj: Any) -> str:
    return json.dumps(obj)


class FakeProvider(LLMProvider):
    """
    Scripted provider: replies are chosen by the first registered needle
    found in the prompt, most recent registration first.
    """

    def __init__(self, default: str = "") -> None:
        self.rules: List[Tuple[str, Reply]] = []
        self.default = default
        self.calls: List[Dict[str, Any]] = []
        self.available = True
        self._lock = threading.Lock()

    def on(self, needle: str, reply: Reply) -> "FakeProvider":
        self.rules.insert(0, (needle, reply))
        return self

    def prompts(self, needle: str = "") -> List[str]:
        return [c["prompt"] for c in self.calls if needle in c["prompt"]]

    def invoke(self, messages: List[Dict[str, str]], **kwargs) -> str:
        prompt = messages[-1]["content"]
        with self._lock:
            self.calls.append({"prompt": prompt, "messages": messages, **kwargs})
        for needle, reply in self.rules:
            if needle in prompt:
                if isinstance(reply, BaseException):
                    raise reply
                if callable(reply):
                    return reply(prompt)
                return reply
        return self.default

    def check_available(self) -> None:
        if not self.available:
            raise ModelUnavailableError(message="fake model is offline")

    @property
    def info(self) -> ProviderInfo:
        return ProviderInfo(provider_name="fake", model_name="fake-model")


class FakeEmbeddingProvider(EmbeddingProvider):
    """Hashed bag-of-words vectors, so texts sharing words score high."""

    DIM = 64

    def __init__(self) -> None:
        self.fail = False
        self.calls: List[str] = []

    def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise EmbeddingError("fake embedder is down")
        vec = [0.0] * self.DIM
        for word in (text or "").lower().split():
            word = word.strip(".,!?;:'\"()")
            if word:
                vec[zlib.crc32(word.encode("utf-8")) % self.DIM] += 1.0
        return vec
