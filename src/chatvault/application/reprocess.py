# src/chatvault/application/reprocess.py
"""
Bulk reprocessing over all stored conversations.

Strictly sequential, one session at a time. Phases:

    clean     (optional) delete memories, entities, facts, links and edges
    memories  re-run the memory filter over every stored message
    entities  entity extraction per session
    graph     full edge rebuild

The clean delete and the rebuild are not one transaction; a crash in between
leaves partial derived data until reprocessing is run again.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from loguru import logger

from chatvault.application.ports.event_log_port import EventLogPort
from chatvault.core.errors import ChatVaultError
from chatvault.infrastructure.event_log.events import REPROCESS_PROGRESS, emit
from chatvault.infrastructure.stores.conversation_store import ConversationStore
from chatvault.infrastructure.stores.graph_store import GraphStore
from chatvault.infrastructure.stores.memory_store import MemoryStore
from chatvault.memory.graph import EntityGraphBuilder
from chatvault.memory.memory_filter import MemoryFilter

PHASES = ("clean", "memories", "entities", "graph")

ProgressCallback = Callable[[str, int, int], None]


@dataclass
class ReprocessReport:
    sessions: int = 0
    memories_created: int = 0
    entity_sessions: int = 0
    edges: int = 0
    cleaned: bool = False
    errors: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "sessions": self.sessions,
            "memories_created": self.memories_created,
            "entity_sessions": self.entity_sessions,
            "edges": self.edges,
            "cleaned": self.cleaned,
            "errors": self.errors,
        }


class ReprocessService:
    def __init__(
        self,
        *,
        conversations: ConversationStore,
        memories: MemoryStore,
        graph: GraphStore,
        memory_filter: MemoryFilter,
        graph_builder: EntityGraphBuilder,
        event_log: Optional[EventLogPort] = None,
    ):
        self.conversations = conversations
        self.memories = memories
        self.graph = graph
        self.memory_filter = memory_filter
        self.graph_builder = graph_builder
        self.event_log = event_log

    def _progress(self, phase: str, processed: int, total: int, callback: Optional[ProgressCallback]) -> None:
        emit(self.event_log, REPROCESS_PROGRESS, phase=phase, processed=processed, total=total)
        if callback is not None:
            callback(phase, processed, total)

    async def run(self, *, clean: bool = False, on_progress: Optional[ProgressCallback] = None) -> ReprocessReport:
        report = ReprocessReport()
        session_ids = self.conversations.list_session_ids()
        report.sessions = len(session_ids)
        total = len(session_ids)

        if clean:
            removed = self.memories.delete_all()
            self.graph.delete_all()
            report.cleaned = True
            logger.info(f"[reprocess] clean: removed {removed} memories and the entity graph")
            self._progress("clean", 1, 1, on_progress)

        before = self.memories.count()
        self._progress("memories", 0, total, on_progress)
        for i, session_id in enumerate(session_ids, start=1):
            conversation = self.conversations.get_conversation(session_id) or {}
            app_name = conversation.get("app_name") or ""
            for message in self.conversations.list_messages(session_id):
                try:
                    await self.memory_filter.evaluate_message(
                        session_id=session_id,
                        app_name=app_name,
                        role=message["role"],
                        content=message["content"],
                        message_id=message["id"],
                    )
                except ChatVaultError as e:
                    report.errors.append({"phase": "memories", "session_id": session_id, "error": str(e)})
            self._progress("memories", i, total, on_progress)
        report.memories_created = self.memories.count() - before

        self._progress("entities", 0, total, on_progress)
        for i, session_id in enumerate(session_ids, start=1):
            try:
                extraction = await self.graph_builder.process_session(session_id)
                if extraction.entity_ids:
                    report.entity_sessions += 1
            except ChatVaultError as e:
                logger.warning(f"[reprocess] entity extraction failed for {session_id}: {e}")
                report.errors.append({"phase": "entities", "session_id": session_id, "error": str(e)})
            self._progress("entities", i, total, on_progress)

        report.edges = self.graph_builder.rebuild_all()
        self._progress("graph", 1, 1, on_progress)

        logger.info(
            f"[reprocess] done: {report.sessions} sessions, {report.memories_created} new memories, "
            f"{report.edges} edges, {len(report.errors)} errors"
        )
        return report
