# src/chatvault/application/capture_pipeline.py
"""
Capture pipeline.

ingest_capture: parse -> upsert conversation -> dedup -> append new turns,
then return. The follow-up work for the newly inserted turns runs as one
tracked background batch:

    evaluate_memories (concurrent per message, non-critical)
    summarize_session (critical)
    extract_entities (non-critical)
    update_master_memory (non-critical)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from loguru import logger

from chatvault.application.ports.event_log_port import EventLogPort
from chatvault.core.pipeline import Pipeline, PipelineResult, PipelineStage, StageResult
from chatvault.infrastructure.event_log.events import NEW_MESSAGES, emit
from chatvault.infrastructure.stores.conversation_store import ConversationStore
from chatvault.memory.consolidator import MasterMemoryConsolidator
from chatvault.memory.dedup import find_insert_start
from chatvault.memory.graph import EntityGraphBuilder
from chatvault.memory.memory_filter import MemoryFilter
from chatvault.memory.parsers import ParsedCapture, parse_capture
from chatvault.memory.schema import CaptureEvent
from chatvault.memory.summarizer import SessionSummarizer


@dataclass
class BatchContext:
    session_id: str
    app_name: str
    messages: List[Dict[str, Any]] = field(default_factory=list)
    memories: List[Dict[str, Any]] = field(default_factory=list)
    summary: Optional[str] = None


@dataclass
class CaptureOutcome:
    session_id: Optional[str]
    app_name: str
    title: Optional[str]
    platform: str
    parsed: int = 0
    inserted: List[Dict[str, Any]] = field(default_factory=list)
    job: Optional["asyncio.Task[PipelineResult]"] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "app_name": self.app_name,
            "title": self.title,
            "platform": self.platform,
            "parsed": self.parsed,
            "inserted": len(self.inserted),
        }


class CapturePipeline:
    def __init__(
        self,
        *,
        conversations: ConversationStore,
        memory_filter: MemoryFilter,
        summarizer: SessionSummarizer,
        graph_builder: EntityGraphBuilder,
        consolidator: MasterMemoryConsolidator,
        event_log: Optional[EventLogPort] = None,
    ):
        self.conversations = conversations
        self.memory_filter = memory_filter
        self.summarizer = summarizer
        self.graph_builder = graph_builder
        self.consolidator = consolidator
        self.event_log = event_log
        self._jobs: Set["asyncio.Task[PipelineResult]"] = set()
        self.pipeline = self._build_pipeline()

    # ---- capture path ----

    def store_capture(self, event: CaptureEvent) -> tuple[ParsedCapture, List[Dict[str, Any]]]:
        """Synchronous part of a capture: returns (parsed, inserted rows)."""
        parsed = parse_capture(event.raw_text, event.app_name, event.title)
        if not parsed.messages:
            return parsed, []

        session_id = parsed.session_id
        self.conversations.upsert_conversation(
            session_id=session_id, title=parsed.title, app_name=parsed.app_name
        )
        stored = self.conversations.list_messages(session_id)
        start = find_insert_start(stored, parsed.messages)
        if start is None:
            logger.debug(f"[capture] {session_id}: no new messages")
            return parsed, []

        inserted = self.conversations.append_messages(session_id, parsed.messages[start:])
        if inserted:
            logger.info(f"[capture] {session_id}: inserted {len(inserted)} new messages")
        return parsed, inserted

    async def ingest_capture(self, event: CaptureEvent) -> CaptureOutcome:
        """Store new turns and return; follow-up work is left running in the background."""
        parsed, inserted = self.store_capture(event)
        outcome = CaptureOutcome(
            session_id=parsed.session_id if parsed.messages else None,
            app_name=parsed.app_name,
            title=parsed.title if parsed.messages else event.title,
            platform=parsed.platform,
            parsed=len(parsed.messages),
            inserted=inserted,
        )
        if inserted:
            emit(self.event_log, NEW_MESSAGES, session_id=parsed.session_id, count=len(inserted), messages=inserted)
            outcome.job = self.dispatch(
                BatchContext(session_id=parsed.session_id, app_name=parsed.app_name, messages=inserted)
            )
        return outcome

    # ---- background batches ----

    def dispatch(self, ctx: BatchContext) -> "asyncio.Task[PipelineResult]":
        task = asyncio.create_task(self.run_batch(ctx), name=f"batch:{ctx.session_id}")
        self._jobs.add(task)
        task.add_done_callback(self._job_done)
        return task

    def _job_done(self, task: "asyncio.Task[PipelineResult]") -> None:
        self._jobs.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"[capture] batch {task.get_name()} crashed: {exc!r}")

    @property
    def pending_jobs(self) -> int:
        return len(self._jobs)

    async def drain(self) -> List[PipelineResult]:
        """Wait for every in-flight batch, including ones started while waiting."""
        results: List[PipelineResult] = []
        while self._jobs:
            done = await asyncio.gather(*list(self._jobs), return_exceptions=True)
            results.extend(r for r in done if isinstance(r, PipelineResult))
        return results

    async def run_batch(self, ctx: BatchContext) -> PipelineResult:
        return await self.pipeline.run(ctx, label=ctx.session_id)

    async def summarize(self, session_id: str, app_name: str = "") -> PipelineResult:
        """On-demand summary with the same downstream steps as a capture batch."""
        return await self.run_batch(BatchContext(session_id=session_id, app_name=app_name))

    # ---- stages ----

    def _build_pipeline(self) -> Pipeline:
        return (
            Pipeline("capture-batch")
            .add_stage(PipelineStage(
                "evaluate_memories",
                self._evaluate_memories,
                is_critical=False,
                skip_if=lambda ctx: not ctx.messages,
                update_context=_store_output("memories"),
            ))
            .add_stage(PipelineStage(
                "summarize_session",
                self._summarize_session,
                is_critical=True,
                update_context=_store_output("summary"),
            ))
            .add_stage(PipelineStage(
                "extract_entities",
                self._extract_entities,
                is_critical=False,
                skip_if=lambda ctx: ctx.summary is None,
            ))
            .add_stage(PipelineStage(
                "update_master_memory",
                self._update_master_memory,
                is_critical=False,
                skip_if=lambda ctx: ctx.summary is None,
            ))
        )

    async def _evaluate_memories(self, ctx: BatchContext) -> List[Dict[str, Any]]:
        outcomes = await asyncio.gather(
            *(
                self.memory_filter.evaluate_message(
                    session_id=ctx.session_id,
                    app_name=ctx.app_name,
                    role=m["role"],
                    content=m["content"],
                    message_id=m["id"],
                )
                for m in ctx.messages
            ),
            return_exceptions=True,
        )
        stored = []
        for m, outcome in zip(ctx.messages, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(f"[capture] memory evaluation failed for message {m['id']}: {outcome}")
            elif outcome is not None:
                stored.append(outcome)
        return stored

    async def _summarize_session(self, ctx: BatchContext) -> Optional[str]:
        return await self.summarizer.summarize(ctx.session_id)

    async def _extract_entities(self, ctx: BatchContext):
        return await self.graph_builder.process_session(ctx.session_id)

    async def _update_master_memory(self, ctx: BatchContext) -> Optional[str]:
        return await self.consolidator.update_incremental(ctx.summary or "")


def _store_output(attr: str):
    def _update(ctx: BatchContext, result: StageResult) -> BatchContext:
        if result.ok:
            setattr(ctx, attr, result.output)
        return ctx
    return _update
