# src/chatvault/memory/graph.py
"""
Entity extraction and co-occurrence graph maintenance.

One extraction call per session over its memories. Surviving entities are
upserted, linked to the session and given their new facts; an entity that
gained facts gets its running summary rewritten from the previous summary plus
only those new facts. Edges for the session are rebuilt when it touched more
than one entity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from chatvault.application.ports.event_log_port import EventLogPort
from chatvault.core.errors import LLMError
from chatvault.infrastructure.event_log.events import NEW_ENTITY, emit
from chatvault.infrastructure.llm.chat_client import ChatClient
from chatvault.infrastructure.llm.router import TaskType
from chatvault.infrastructure.stores.graph_store import GraphStore
from chatvault.infrastructure.stores.memory_store import MemoryStore
from chatvault.memory.llm_json import parse_model
from chatvault.memory.prompts import PromptRegistry
from chatvault.memory.schema import EntityExtraction, ExtractedEntity

STRICTNESS_KEY = "entity_strictness"
STRICTNESS_TIERS = ("lenient", "balanced", "strict")
MIN_NAME_LENGTH = 3

ENTITY_BLOCKLIST = frozenset({
    "api",
    "app",
    "application",
    "assistant",
    "backend",
    "bot",
    "chat",
    "code",
    "data",
    "database",
    "file",
    "frontend",
    "model",
    "project",
    "server",
    "service",
    "system",
    "tool",
    "user",
    "website",
})


def is_blocked(entity: ExtractedEntity) -> bool:
    name = entity.name.strip()
    return len(name) < MIN_NAME_LENGTH or name.lower() in ENTITY_BLOCKLIST


def render_memory_list(memories: List[Dict[str, Any]]) -> str:
    return "\n".join(f"- {m['content']}" for m in memories if m.get("content"))


@dataclass
class ExtractionReport:
    session_id: str
    entity_ids: List[int] = field(default_factory=list)
    created: List[int] = field(default_factory=list)
    new_facts: int = 0
    skipped: List[str] = field(default_factory=list)
    edges: int = 0


class EntityGraphBuilder:
    def __init__(
        self,
        *,
        chat: ChatClient,
        graph: GraphStore,
        memories: MemoryStore,
        prompts: PromptRegistry,
        settings=None,
        default_strictness: str = "balanced",
        extract_timeout: float = 90.0,
        summary_timeout: float = 90.0,
        event_log: Optional[EventLogPort] = None,
    ):
        self.chat = chat
        self.graph = graph
        self.memories = memories
        self.prompts = prompts
        self.settings = settings
        self.default_strictness = default_strictness
        self.extract_timeout = extract_timeout
        self.summary_timeout = summary_timeout
        self.event_log = event_log

    def strictness(self) -> str:
        value = self.settings.get(STRICTNESS_KEY, None) if self.settings is not None else None
        return value if value in STRICTNESS_TIERS else self.default_strictness

    async def extract(self, memory_text: str) -> List[ExtractedEntity]:
        """One extraction call; malformed output reads as no entities."""
        prompt = self.prompts.render(f"entityExtraction.{self.strictness()}", MEMORY_TEXT=memory_text)
        response = await self.chat.chat(
            prompt,
            timeout=self.extract_timeout,
            label="entity-extract",
            task=TaskType.EXTRACTION,
        )
        parsed = parse_model(response, EntityExtraction)
        if not parsed.is_ok():
            logger.warning(f"entity extraction output unusable: {parsed.error}")
            return []
        return parsed.unwrap().entities

    async def process_session(self, session_id: str) -> ExtractionReport:
        """
        Raises LLMError when the extraction call itself fails; per-entity
        summary failures are logged and skipped.
        """
        report = ExtractionReport(session_id=session_id)
        memories = self.memories.list_session_memories(session_id)
        if not memories:
            return report

        for entity in await self.extract(render_memory_list(memories)):
            if is_blocked(entity):
                report.skipped.append(entity.name)
                continue
            if not entity.facts:
                report.skipped.append(entity.name)
                continue

            entity_id, created = self.graph.upsert_entity(entity.name, entity.type)
            self.graph.link_session(entity_id, session_id)
            if entity_id not in report.entity_ids:
                report.entity_ids.append(entity_id)
            if created:
                report.created.append(entity_id)
                emit(self.event_log, NEW_ENTITY, entity={"id": entity_id, "name": entity.name, "type": entity.type})

            new_facts = [f for f in entity.facts if self.graph.add_fact(entity_id, f, session_id)]
            report.new_facts += len(new_facts)
            if new_facts:
                await self._refresh_summary(entity_id, entity, new_facts)

        if len(report.entity_ids) > 1:
            report.edges = self.graph.rebuild_session_edges(session_id)

        logger.info(
            f"[graph] {session_id}: {len(report.entity_ids)} entities, "
            f"{report.new_facts} new facts, {report.edges} edges"
        )
        return report

    async def _refresh_summary(self, entity_id: int, entity: ExtractedEntity, new_facts: List[str]) -> None:
        current = self.graph.get_entity(entity_id) or {}
        prompt = self.prompts.render(
            "entitySummary",
            NAME=current.get("name") or entity.name,
            TYPE=current.get("type") or entity.type,
            EXISTING_SUMMARY=current.get("summary") or "(none)",
            NEW_FACTS="\n".join(f"- {f}" for f in new_facts),
        )
        try:
            summary = await self.chat.chat(
                prompt,
                timeout=self.summary_timeout,
                label="entity-summary",
                task=TaskType.ENTITY_SUMMARY,
            )
        except LLMError as e:
            logger.warning(f"entity summary for {entity.name!r} failed: {e}")
            return
        if summary.strip():
            self.graph.update_entity_summary(entity_id, summary.strip())

    def rebuild_all(self) -> int:
        count = self.graph.rebuild_all_edges()
        logger.info(f"[graph] full rebuild: {count} edges")
        return count
