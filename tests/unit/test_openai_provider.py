"""
OpenAI-compatible provider: per-call timeout and error mapping
"""

import httpx
import openai
import pytest

from chatvault.core.errors import LLMError, LLMTimeoutError
from chatvault.infrastructure.llm.providers.openai_provider import OpenAIProvider


@pytest.fixture
def provider():
    return OpenAIProvider(api_key="local", model_name="local-model", base_url="http://127.0.0.1:9/v1", timeout=30.0)


def test_client_is_built_without_retries(provider):
    assert provider.client.max_retries == 0


def test_call_timeout_is_forwarded(provider, monkeypatch):
    seen = {}

    def create(**kwargs):
        seen.update(kwargs)
        raise openai.APITimeoutError(request=httpx.Request("POST", "http://127.0.0.1:9/v1/chat/completions"))

    monkeypatch.setattr(provider.client.chat.completions, "create", create)

    with pytest.raises(LLMTimeoutError):
        provider.invoke([{"role": "user", "content": "hi"}], timeout=7.5, max_tokens=16)
    assert seen["timeout"] == 7.5
    assert seen["max_tokens"] == 16


def test_default_timeout_used_when_call_gives_none(provider, monkeypatch):
    seen = {}

    def create(**kwargs):
        seen.update(kwargs)
        raise openai.APIConnectionError(request=httpx.Request("POST", "http://127.0.0.1:9/v1/chat/completions"))

    monkeypatch.setattr(provider.client.chat.completions, "create", create)

    with pytest.raises(LLMError) as info:
        provider.invoke([{"role": "user", "content": "hi"}], timeout=None)
    assert not isinstance(info.value, LLMTimeoutError)
    assert seen["timeout"] == 30.0
