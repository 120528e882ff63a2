# src/chatvault/memory/memory_filter.py
"""
Memory Filter

Decides which chat turns become durable memories.

Pipeline per message:
1. cheap pre-filters (empty, trivial phrases, role-dependent minimum length)
2. strictness-tiered classifier prompt -> {store, name, memory}
3. post-filters (length, word count, generic phrasing, in-session near-duplicate)
4. embed (fail closed to "[]") and idempotent insert
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

from loguru import logger

from chatvault.application.ports.event_log_port import EventLogPort
from chatvault.core.errors import ChatVaultError, LLMError, Result
from chatvault.infrastructure.embeddings import EmbeddingService
from chatvault.infrastructure.event_log.events import NEW_MEMORY, emit
from chatvault.infrastructure.llm.chat_client import ChatClient
from chatvault.infrastructure.llm.router import TaskType
from chatvault.infrastructure.stores.memory_store import MemoryStore
from chatvault.memory.llm_json import parse_model
from chatvault.memory.prompts import PromptRegistry
from chatvault.memory.schema import MemoryVerdict

STRICTNESS_KEY = "memory_strictness"
STRICTNESS_TIERS = ("lenient", "balanced", "strict")

MIN_LENGTH = {"user": 30, "assistant": 50}
MIN_WORDS = 4
MAX_MEMORY_CHARS = 280
CLASSIFY_MAX_TOKENS = 256

TRIVIAL_PHRASES = frozenset({
    "hi", "hello", "hey", "hey there", "hi there", "yo",
    "thanks", "thank you", "thanks!", "thank you!", "thx", "ty",
    "ok", "okay", "ok thanks", "okay thanks", "cool", "nice", "great",
    "got it", "sounds good", "sure", "yes", "no", "yep", "nope",
    "perfect", "awesome", "good morning", "good night", "bye", "goodbye",
    "you're welcome", "no problem", "np", "lol", "k",
})

GENERIC_PATTERNS = (
    re.compile(r"^the user (asked|is asking|wants to know|inquired|requested)\b", re.I),
    re.compile(r"^(the )?assistant (said|explained|suggested|provided|answered)\b", re.I),
    re.compile(r"^this is a (common|general|standard|typical)\b", re.I),
    re.compile(r"^(it is|it's) (important|common|generally|often)\b", re.I),
    re.compile(r"^(a|an) [a-z]+ is (a|an) [a-z]+", re.I),
    re.compile(r"\b(greet(ed|ing)|said hello|thanked the assistant)\b", re.I),
)

_TRAILING_PUNCT = re.compile(r"[\s!.?,]+$")


def _norm_phrase(text: str) -> str:
    return _TRAILING_PUNCT.sub("", text.strip().lower())


def passes_prefilter(role: str, content: str) -> bool:
    """False for turns never worth a classifier call."""
    text = (content or "").strip()
    if not text:
        return False
    if _norm_phrase(text) in TRIVIAL_PHRASES or text.lower() in TRIVIAL_PHRASES:
        return False
    return len(text) >= MIN_LENGTH.get((role or "").lower(), MIN_LENGTH["user"])


def rejection_reason(memory: str, session_memories=()) -> Optional[str]:
    """Post-classification gate; None means keep."""
    text = (memory or "").strip()
    if not text:
        return "empty"
    if len(text.split()) < MIN_WORDS:
        return "too-short"
    if len(text) > MAX_MEMORY_CHARS:
        return "too-long"
    if any(p.search(text) for p in GENERIC_PATTERNS):
        return "generic"
    lower = text.lower()
    for existing in session_memories:
        other = str((existing.get("content") if isinstance(existing, dict) else existing) or "").lower()
        if other and (lower in other or other in lower):
            return "near-duplicate"
    return None


class MemoryFilter:
    def __init__(
        self,
        *,
        chat: ChatClient,
        memories: MemoryStore,
        embeddings: EmbeddingService,
        prompts: PromptRegistry,
        settings=None,
        default_strictness: str = "balanced",
        timeout: float = 60.0,
        event_log: Optional[EventLogPort] = None,
    ):
        self.chat = chat
        self.memories = memories
        self.embeddings = embeddings
        self.prompts = prompts
        self.settings = settings
        self.default_strictness = default_strictness
        self.timeout = timeout
        self.event_log = event_log

    def strictness(self) -> str:
        value = self.settings.get(STRICTNESS_KEY, None) if self.settings is not None else None
        return value if value in STRICTNESS_TIERS else self.default_strictness

    async def classify(self, role: str, content: str) -> Result[MemoryVerdict, ChatVaultError]:
        prompt = self.prompts.render(
            f"memoryFilter.{self.strictness()}",
            ROLE=role,
            MESSAGE=content,
        )
        try:
            response = await self.chat.chat(
                prompt,
                timeout=self.timeout,
                max_tokens=CLASSIFY_MAX_TOKENS,
                label="memory-filter",
                task=TaskType.CLASSIFY,
            )
        except LLMError as e:
            return Result.err(e)
        return parse_model(response, MemoryVerdict)

    async def evaluate_message(
        self,
        *,
        session_id: str,
        app_name: str,
        role: str,
        content: str,
        message_id: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Returns the stored memory row, or None when the turn was rejected.
        """
        if not passes_prefilter(role, content):
            return None

        if message_id is not None:
            existing = self.memories.find_by_message_id(message_id)
            if existing is not None:
                return existing

        result = await self.classify(role, content)
        if not result.is_ok():
            # malformed output reads as {store: false}; model failure skips the turn
            logger.warning(f"memory-filter skipped message {message_id}: {result.error}")
            return None

        verdict = result.unwrap()
        if not verdict.store:
            return None

        reason = rejection_reason(verdict.memory, self.memories.list_session_memories(session_id))
        if reason:
            logger.debug(f"memory-filter dropped {verdict.memory[:60]!r}: {reason}")
            return None

        vector = await self.embeddings.aembed_or_empty(verdict.memory)

        # sibling turns of the same capture may have stored a memory meanwhile;
        # no await between this check and the insert
        reason = rejection_reason(verdict.memory, self.memories.list_session_memories(session_id))
        if reason:
            logger.debug(f"memory-filter dropped {verdict.memory[:60]!r}: {reason}")
            return None

        row, created = self.memories.add_memory(
            content=verdict.memory,
            name=verdict.name or None,
            raw_text=content,
            source_app=app_name,
            session_id=session_id,
            message_id=message_id,
            embedding=vector,
        )
        if created:
            logger.info(f"[memory] {session_id}: {row['content'][:80]}")
            emit(self.event_log, NEW_MEMORY, memory=row)
        return row

    async def add_note(
        self,
        content: str,
        *,
        source_app: str = "note",
        session_id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Store an ad-hoc memory without classification."""
        text = (content or "").strip()
        if not text:
            raise ValueError("note must not be empty")
        vector = await self.embeddings.aembed_or_empty(text)
        row, created = self.memories.add_memory(
            content=text,
            name=name,
            raw_text=text,
            source_app=source_app,
            session_id=session_id,
            embedding=vector,
        )
        if created:
            emit(self.event_log, NEW_MEMORY, memory=row)
        return row
