# src/chatvault/infrastructure/llm/chat_client.py
"""
Async facade over the blocking providers.

Every model call in the pipeline goes through `ChatClient.chat` so that the
per-call timeout, label and duration are handled in one place.
"""

from __future__ import annotations

import asyncio
import time
from typing import Dict, List, Optional

from loguru import logger

from chatvault.core.errors import LLMError

from .providers.base import build_messages
from .router import ModelRouter, TaskType


class ChatClient:
    def __init__(self, router: ModelRouter, temperature: float = 0.2):
        self.router = router
        self.temperature = temperature

    async def chat(
        self,
        prompt: str,
        history: Optional[List[Dict[str, str]]] = None,
        *,
        timeout: float,
        max_tokens: Optional[int] = None,
        label: str = "chat",
        task: TaskType = TaskType.DEFAULT,
        system_prompt: Optional[str] = None,
    ) -> str:
        """
        Send one prompt and return the response text.

        Raises LLMTimeoutError when `timeout` seconds pass, LLMError on any
        other model failure.
        """
        provider = self.router.get_provider(task)
        messages = build_messages(system_prompt, prompt, history)
        started = time.monotonic()
        logger.debug(f"[{label}] -> {provider.info.model_name} (timeout={timeout}s)")
        try:
            text = await asyncio.to_thread(
                provider.invoke,
                messages,
                timeout=timeout,
                max_tokens=max_tokens,
                temperature=self.temperature,
            )
        except LLMError as e:
            elapsed = time.monotonic() - started
            logger.warning(f"[{label}] failed after {elapsed:.1f}s: {e}")
            raise
        elapsed = time.monotonic() - started
        logger.debug(f"[{label}] <- {len(text)} chars in {elapsed:.1f}s")
        return text

    async def check_available(self, task: TaskType = TaskType.DEFAULT) -> None:
        """Raise ModelUnavailableError when the configured model cannot be reached."""
        provider = self.router.get_provider(task)
        await asyncio.to_thread(provider.check_available)
