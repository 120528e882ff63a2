# src/chatvault/memory/retrieval.py
"""
Hybrid Retrieval Engine

query -> tokens -> {vector search over memories (FTS fallback), BM25 over
messages / summaries / entities / facts} -> clipped prompt context -> answer.
The full result sets are returned next to the answer for citation.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from chatvault.infrastructure.embeddings import EmbeddingService
from chatvault.infrastructure.llm.chat_client import ChatClient
from chatvault.infrastructure.llm.router import TaskType
from chatvault.infrastructure.stores.search_index import SearchIndex
from chatvault.infrastructure.stores.summary_store import SummaryStore
from chatvault.memory.prompts import PromptRegistry

MAX_TOKENS = 6
MIN_TOKEN_LEN = 3
LINES_PER_SOURCE = 6
HISTORY_TURNS = 6

MEMORY_LIMIT = 12
MESSAGE_LIMIT = 12
SUMMARY_LIMIT = 8
ENTITY_LIMIT = 8
FACT_LIMIT = 8
MIN_VECTOR_SCORE = 0.2

CLIP = {
    "memory": 500,
    "message": 400,
    "summary": 600,
    "entity": 400,
    "fact": 400,
}

STOPWORDS = frozenset("""
a about above after again all also am an and any are as at be because been before being
between both but by can could did do does doing down during each few for from further had
has have having he her here hers him his how i if in into is it its itself just me more
most my no nor not now of off on once only or other our ours out over own same she should
so some such than that the their theirs them then there these they this those through to
too under until up very was we were what when where which while who whom why will with
would you your yours yourself tell know remember please anything something thing things
did does ever much many like get got
""".split())

_WORD = re.compile(r"[a-z0-9]+")


def tokenize(query: str) -> List[str]:
    """Up to 6 distinct lowercase alphanumeric tokens of 3+ chars, stopwords removed."""
    tokens: List[str] = []
    for word in _WORD.findall((query or "").lower()):
        if len(word) < MIN_TOKEN_LEN or word in STOPWORDS or word in tokens:
            continue
        tokens.append(word)
        if len(tokens) == MAX_TOKENS:
            break
    return tokens


def build_fts_query(query: str, tokens: Optional[Sequence[str]] = None) -> str:
    """OR-joined tokens; the raw query as one quoted phrase when none survive."""
    tokens = tokenize(query) if tokens is None else tokens
    if tokens:
        return " OR ".join(tokens)
    raw = (query or "").strip()
    return '"' + raw.replace('"', '""') + '"' if raw else ""


def clip(text: Optional[str], limit: int) -> str:
    s = " ".join((text or "").split())
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 3)].rstrip() + "..."


def master_is_relevant(master: str, tokens: Sequence[str]) -> bool:
    lower = (master or "").lower()
    return bool(lower) and any(t in lower for t in tokens)


@dataclass
class RetrievalResult:
    query: str
    answer: Optional[str] = None
    context: str = ""
    memories: List[Dict[str, Any]] = field(default_factory=list)
    messages: List[Dict[str, Any]] = field(default_factory=list)
    summaries: List[Dict[str, Any]] = field(default_factory=list)
    entities: List[Dict[str, Any]] = field(default_factory=list)
    facts: List[Dict[str, Any]] = field(default_factory=list)
    master_memory: Optional[str] = None
    used_master: bool = False
    vector_search_used: bool = False

    @property
    def has_evidence(self) -> bool:
        return any((self.memories, self.messages, self.summaries, self.entities, self.facts))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "answer": self.answer,
            "context": self.context,
            "memories": self.memories,
            "messages": self.messages,
            "summaries": self.summaries,
            "entities": self.entities,
            "facts": self.facts,
            "master_memory": self.master_memory if self.used_master else None,
            "used_master": self.used_master,
            "vector_search_used": self.vector_search_used,
        }


class HybridRetriever:
    def __init__(
        self,
        *,
        index: SearchIndex,
        summaries: SummaryStore,
        embeddings: EmbeddingService,
        prompts: PromptRegistry,
        chat: Optional[ChatClient] = None,
        timeout: float = 180.0,
    ):
        self.index = index
        self.summaries = summaries
        self.embeddings = embeddings
        self.prompts = prompts
        self.chat = chat
        self.timeout = timeout

    # ---- searches ----

    def _fts(self, search, fts_query: str, app_name: Optional[str], limit: int) -> List[Dict[str, Any]]:
        if not fts_query:
            return []
        try:
            return search(fts_query, app_name=app_name, limit=limit)
        except SQLAlchemyError as e:
            logger.warning(f"full-text search {search.__name__} failed for {fts_query!r}: {e}")
            return []

    def search_memories(
        self, query: str, *, app_name: Optional[str] = None, fts_query: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], bool]:
        """
        Vector search first; full-text search when no vector can be made, the
        vector query fails, or it finds nothing above the score floor.

        Returns (rows, vector_search_used).
        """
        fts_query = build_fts_query(query) if fts_query is None else fts_query
        vector = self.embeddings.embed_or_empty(query)
        if vector:
            try:
                rows = self.index.search_memories_by_vector(
                    vector, app_name=app_name, limit=MEMORY_LIMIT, min_score=MIN_VECTOR_SCORE
                )
                if rows:
                    return rows, True
            except SQLAlchemyError as e:
                logger.warning(f"vector search failed, falling back to full-text: {e}")
        return self._fts(self.index.search_memories, fts_query, app_name, MEMORY_LIMIT), False

    async def retrieve(self, query: str, *, app_name: Optional[str] = None) -> RetrievalResult:
        tokens = tokenize(query)
        fts_query = build_fts_query(query, tokens)
        result = RetrievalResult(query=query)

        (memories, vector_used), messages, summaries, entities, facts = await asyncio.gather(
            asyncio.to_thread(self.search_memories, query, app_name=app_name, fts_query=fts_query),
            asyncio.to_thread(self._fts, self.index.search_messages, fts_query, app_name, MESSAGE_LIMIT),
            asyncio.to_thread(self._fts, self.index.search_summaries, fts_query, app_name, SUMMARY_LIMIT),
            asyncio.to_thread(self._fts, self.index.search_entities, fts_query, app_name, ENTITY_LIMIT),
            asyncio.to_thread(self._fts, self.index.search_facts, fts_query, app_name, FACT_LIMIT),
        )
        result.memories, result.vector_search_used = memories, vector_used
        result.messages, result.summaries = messages, summaries
        result.entities, result.facts = entities, facts

        master = (self.summaries.get_master().get("content") or "").strip()
        if master and (master_is_relevant(master, tokens) or not result.has_evidence):
            result.master_memory = master
            result.used_master = True

        result.context = self.build_context(result)
        return result

    # ---- prompt ----

    @staticmethod
    def build_context(result: RetrievalResult) -> str:
        sections: List[str] = []
        if result.used_master and result.master_memory:
            sections.append(f"[Master Memory]\n{result.master_memory}")

        lines = [
            f"[Memory {i}] {clip(m.get('content'), CLIP['memory'])}"
            for i, m in enumerate(result.memories[:LINES_PER_SOURCE], start=1)
        ]
        lines += [
            f"[Message {i}] ({m.get('title') or m.get('session_id')}) {m.get('role')}: "
            f"{clip(m.get('content'), CLIP['message'])}"
            for i, m in enumerate(result.messages[:LINES_PER_SOURCE], start=1)
        ]
        lines += [
            f"[Summary {i}] ({s.get('title') or s.get('session_id')}) {clip(s.get('summary'), CLIP['summary'])}"
            for i, s in enumerate(result.summaries[:LINES_PER_SOURCE], start=1)
        ]
        lines += [
            f"[Entity {i}] {e.get('name')} ({e.get('type')}): {clip(e.get('summary') or '', CLIP['entity'])}"
            for i, e in enumerate(result.entities[:LINES_PER_SOURCE], start=1)
        ]
        lines += [
            f"[Fact {i}] {f.get('entity_name')}: {clip(f.get('fact'), CLIP['fact'])}"
            for i, f in enumerate(result.facts[:LINES_PER_SOURCE], start=1)
        ]
        if lines:
            sections.append("\n".join(lines))
        return "\n\n".join(sections) if sections else "(no matching context)"

    @staticmethod
    def history_block(history: Optional[Sequence[Dict[str, str]]]) -> str:
        turns = [h for h in (history or []) if (h.get("content") or "").strip()][-HISTORY_TURNS:]
        if not turns:
            return ""
        rendered = "\n".join(
            f"{'User' if h.get('role') == 'user' else 'Assistant'}: {h['content'].strip()}" for h in turns
        )
        return f"\nConversation so far:\n{rendered}\n"

    async def answer(
        self,
        query: str,
        *,
        app_name: Optional[str] = None,
        history: Optional[Sequence[Dict[str, str]]] = None,
    ) -> RetrievalResult:
        """Retrieve, then one chat call; model errors propagate."""
        if self.chat is None:
            raise RuntimeError("HybridRetriever was built without a chat client")
        result = await self.retrieve(query, app_name=app_name)
        prompt = self.prompts.render(
            "ragChat",
            HISTORY_BLOCK=self.history_block(history),
            QUERY=query,
            CONTEXT_BLOCK=result.context,
        )
        result.answer = await self.chat.chat(prompt, timeout=self.timeout, label="rag-chat", task=TaskType.CHAT)
        return result
