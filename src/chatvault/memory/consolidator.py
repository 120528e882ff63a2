# src/chatvault/memory/consolidator.py
"""
Master Memory Consolidator

Keeps one cross-session "about the user" document.

- incremental: fold one new session summary into the current document
- regenerate: rebuild from every session summary; one call when the corpus is
  small, otherwise map-reduce over size-capped chunks, then one merge call
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from chatvault.application.ports.event_log_port import EventLogPort
from chatvault.infrastructure.event_log.events import MASTER_MEMORY_PROGRESS, emit
from chatvault.infrastructure.llm.chat_client import ChatClient
from chatvault.infrastructure.llm.router import TaskType
from chatvault.infrastructure.stores.summary_store import SummaryStore
from chatvault.memory.prompts import PromptRegistry

SINGLE_SHOT_CHARS = 60_000
CHUNK_CHARS = 50_000
BLOCK_SEPARATOR = "\n\n---\n\n"

ProgressCallback = Callable[[int, int], None]


def format_block(index: int, summary: Dict[str, Any]) -> str:
    return f"### Conversation {index}: {summary['session_id']}\n{summary['summary']}"


def chunk_summaries(blocks: List[str], max_chars: int = CHUNK_CHARS) -> List[List[str]]:
    """
    Greedy partition of formatted blocks into chunks of at most `max_chars`
    (joined with the separator). A block is never split; one larger than the
    cap becomes a chunk of its own.
    """
    chunks: List[List[str]] = []
    current: List[str] = []
    size = 0
    for block in blocks:
        added = len(block) + (len(BLOCK_SEPARATOR) if current else 0)
        if current and size + added > max_chars:
            chunks.append(current)
            current, size = [], 0
            added = len(block)
        current.append(block)
        size += added
    if current:
        chunks.append(current)
    return chunks


class MasterMemoryConsolidator:
    def __init__(
        self,
        *,
        chat: ChatClient,
        summaries: SummaryStore,
        prompts: PromptRegistry,
        timeout: float = 900.0,
        single_shot_chars: int = SINGLE_SHOT_CHARS,
        chunk_chars: int = CHUNK_CHARS,
        event_log: Optional[EventLogPort] = None,
    ):
        self.chat = chat
        self.summaries = summaries
        self.prompts = prompts
        self.timeout = timeout
        self.single_shot_chars = single_shot_chars
        self.chunk_chars = chunk_chars
        self.event_log = event_log

    async def _call(self, prompt: str, label: str) -> str:
        text = await self.chat.chat(prompt, timeout=self.timeout, label=label, task=TaskType.MASTER_MERGE)
        return text.strip()

    async def update_incremental(self, new_summary: str) -> Optional[str]:
        """Merge one session summary into the master document."""
        if not (new_summary or "").strip():
            return None
        current = (self.summaries.get_master().get("content") or "").strip()
        if not current:
            prompt = self.prompts.render("masterMemory.initial", SUMMARY=new_summary)
            label = "master-initial"
        else:
            prompt = self.prompts.render(
                "masterMemory.incremental",
                CURRENT_MASTER=current,
                NEW_SUMMARY=new_summary,
            )
            label = "master-incremental"

        content = await self._call(prompt, label)
        if not content:
            logger.warning("[master] model returned an empty document, keeping the current one")
            return None
        self.summaries.set_master(content)
        logger.info(f"[master] {label}: {len(content)} chars")
        return content

    async def regenerate(self, on_progress: Optional[ProgressCallback] = None) -> str:
        summaries = self.summaries.list_summaries()
        if not summaries:
            self.summaries.clear_master()
            logger.info("[master] no summaries, master memory cleared")
            return ""

        blocks = [format_block(i + 1, s) for i, s in enumerate(summaries)]
        full_text = BLOCK_SEPARATOR.join(blocks)

        if len(full_text) < self.single_shot_chars:
            self._progress(0, 1, on_progress)
            content = await self._call(
                self.prompts.render("masterMemory.batchFirst", BATCH_TEXT=full_text),
                "master-regenerate",
            )
            self._progress(1, 1, on_progress)
        else:
            content = await self._map_reduce(blocks, on_progress)

        self.summaries.set_master(content)
        logger.info(f"[master] regenerated from {len(summaries)} summaries: {len(content)} chars")
        return content

    async def _map_reduce(self, blocks: List[str], on_progress: Optional[ProgressCallback]) -> str:
        chunks = chunk_summaries(blocks, self.chunk_chars)
        total = len(chunks) + 1
        logger.info(f"[master] map-reduce over {len(chunks)} chunks")
        self._progress(0, total, on_progress)

        partials: List[str] = []
        for i, chunk in enumerate(chunks, start=1):
            partial = await self._call(
                self.prompts.render("masterMemory.batchFirst", BATCH_TEXT=BLOCK_SEPARATOR.join(chunk)),
                f"master-chunk-{i}",
            )
            partials.append(partial)
            self._progress(i, total, on_progress)

        partial_text = BLOCK_SEPARATOR.join(
            f"### Partial Summary {i}\n{p}" for i, p in enumerate(partials, start=1)
        )
        merged = await self._call(
            self.prompts.render("masterMemory.merge", PARTIAL_SUMMARIES=partial_text),
            "master-merge",
        )
        self._progress(total, total, on_progress)
        return merged

    def _progress(self, done: int, total: int, callback: Optional[ProgressCallback]) -> None:
        emit(self.event_log, MASTER_MEMORY_PROGRESS, current=done, total=total)
        if callback is not None:
            callback(done, total)
