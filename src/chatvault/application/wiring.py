# src/chatvault/application/wiring.py
"""
Startup wiring: one SessionProvider, one store per aggregate, one component
per pipeline step, all resolved once through the DI container.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from chatvault.application.capture_pipeline import CapturePipeline
from chatvault.application.ports.event_log_port import EventLogPort
from chatvault.application.reprocess import ReprocessService
from chatvault.config.settings import Settings
from chatvault.core.di import Container
from chatvault.infrastructure.embeddings import EmbeddingService, build_embedding_service
from chatvault.infrastructure.event_log import CompositeEventLog, LoggingEventLog
from chatvault.infrastructure.llm.chat_client import ChatClient
from chatvault.infrastructure.llm.router import ModelRouter
from chatvault.infrastructure.stores import (
    ConversationStore,
    GraphStore,
    MemoryStore,
    SearchIndex,
    SessionProvider,
    SettingsStore,
    SummaryStore,
    create_schema,
)
from chatvault.memory.consolidator import MasterMemoryConsolidator
from chatvault.memory.graph import EntityGraphBuilder
from chatvault.memory.memory_filter import MemoryFilter
from chatvault.memory.prompts import PromptRegistry
from chatvault.memory.retrieval import HybridRetriever
from chatvault.memory.summarizer import SessionSummarizer


@dataclass
class AppServices:
    settings: Settings
    provider: SessionProvider
    event_log: CompositeEventLog
    conversations: ConversationStore
    memories: MemoryStore
    graph: GraphStore
    summaries: SummaryStore
    runtime_settings: SettingsStore
    index: SearchIndex
    prompts: PromptRegistry
    memory_filter: MemoryFilter
    graph_builder: EntityGraphBuilder
    summarizer: SessionSummarizer
    consolidator: MasterMemoryConsolidator
    retriever: HybridRetriever
    capture: CapturePipeline
    reprocess: ReprocessService

    chat: ChatClient

    async def check_model(self) -> None:
        """Raises ModelUnavailableError; callers must not carry on without a model."""
        await self.chat.check_available()

    def close(self) -> None:
        self.event_log.close()
        self.provider.dispose()


def build_container(
    settings: Settings,
    *,
    router: Optional[ModelRouter] = None,
    embeddings: Optional[EmbeddingService] = None,
    event_log: Optional[EventLogPort] = None,
) -> Container:
    """
    Register every component. `router`, `embeddings` and `event_log` can be
    supplied to replace the configured ones (tests, embedded use).
    """
    c = Container()
    c.register_instance(Settings, settings)

    def _provider(_c: Container) -> SessionProvider:
        provider = SessionProvider(settings.database.url)
        create_schema(provider.engine)
        return provider

    def _event_log(_c: Container) -> CompositeEventLog:
        log = CompositeEventLog([LoggingEventLog()])
        if event_log is not None:
            log.add_backend(event_log)
        return log

    c.register(SessionProvider, _provider)
    c.register(CompositeEventLog, _event_log)
    c.register(ModelRouter, lambda _c: router or ModelRouter.from_settings(settings.llm))
    c.register(ChatClient, lambda c: ChatClient(c.resolve(ModelRouter), temperature=settings.llm.temperature))
    c.register(EmbeddingService, lambda _c: embeddings or build_embedding_service(settings.embeddings))

    for store in (ConversationStore, MemoryStore, GraphStore, SummaryStore, SettingsStore, SearchIndex):
        c.register(store, lambda c, store=store: store(c.resolve(SessionProvider)))

    c.register(PromptRegistry, lambda c: PromptRegistry(c.resolve(SettingsStore)))

    t = settings.timeouts
    c.register(MemoryFilter, lambda c: MemoryFilter(
        chat=c.resolve(ChatClient),
        memories=c.resolve(MemoryStore),
        embeddings=c.resolve(EmbeddingService),
        prompts=c.resolve(PromptRegistry),
        settings=c.resolve(SettingsStore),
        default_strictness=settings.memory.strictness,
        timeout=t.classify,
        event_log=c.resolve(CompositeEventLog),
    ))
    c.register(EntityGraphBuilder, lambda c: EntityGraphBuilder(
        chat=c.resolve(ChatClient),
        graph=c.resolve(GraphStore),
        memories=c.resolve(MemoryStore),
        prompts=c.resolve(PromptRegistry),
        settings=c.resolve(SettingsStore),
        default_strictness=settings.memory.entity_strictness,
        extract_timeout=t.extract,
        summary_timeout=t.entity_summary,
        event_log=c.resolve(CompositeEventLog),
    ))
    c.register(SessionSummarizer, lambda c: SessionSummarizer(
        chat=c.resolve(ChatClient),
        conversations=c.resolve(ConversationStore),
        summaries=c.resolve(SummaryStore),
        prompts=c.resolve(PromptRegistry),
        timeout=t.summarize,
        message_limit=settings.limits.session_message_limit,
        event_log=c.resolve(CompositeEventLog),
    ))
    c.register(MasterMemoryConsolidator, lambda c: MasterMemoryConsolidator(
        chat=c.resolve(ChatClient),
        summaries=c.resolve(SummaryStore),
        prompts=c.resolve(PromptRegistry),
        timeout=t.master_merge,
        single_shot_chars=settings.limits.master_single_shot_chars,
        chunk_chars=settings.limits.master_chunk_chars,
        event_log=c.resolve(CompositeEventLog),
    ))
    c.register(HybridRetriever, lambda c: HybridRetriever(
        index=c.resolve(SearchIndex),
        summaries=c.resolve(SummaryStore),
        embeddings=c.resolve(EmbeddingService),
        prompts=c.resolve(PromptRegistry),
        chat=c.resolve(ChatClient),
        timeout=t.chat,
    ))
    c.register(CapturePipeline, lambda c: CapturePipeline(
        conversations=c.resolve(ConversationStore),
        memory_filter=c.resolve(MemoryFilter),
        summarizer=c.resolve(SessionSummarizer),
        graph_builder=c.resolve(EntityGraphBuilder),
        consolidator=c.resolve(MasterMemoryConsolidator),
        event_log=c.resolve(CompositeEventLog),
    ))
    c.register(ReprocessService, lambda c: ReprocessService(
        conversations=c.resolve(ConversationStore),
        memories=c.resolve(MemoryStore),
        graph=c.resolve(GraphStore),
        memory_filter=c.resolve(MemoryFilter),
        graph_builder=c.resolve(EntityGraphBuilder),
        event_log=c.resolve(CompositeEventLog),
    ))
    return c


def build_services(settings: Settings, **overrides) -> AppServices:
    c = build_container(settings, **overrides)
    return AppServices(
        settings=settings,
        provider=c.resolve(SessionProvider),
        event_log=c.resolve(CompositeEventLog),
        conversations=c.resolve(ConversationStore),
        memories=c.resolve(MemoryStore),
        graph=c.resolve(GraphStore),
        summaries=c.resolve(SummaryStore),
        runtime_settings=c.resolve(SettingsStore),
        index=c.resolve(SearchIndex),
        prompts=c.resolve(PromptRegistry),
        memory_filter=c.resolve(MemoryFilter),
        graph_builder=c.resolve(EntityGraphBuilder),
        summarizer=c.resolve(SessionSummarizer),
        consolidator=c.resolve(MasterMemoryConsolidator),
        retriever=c.resolve(HybridRetriever),
        capture=c.resolve(CapturePipeline),
        reprocess=c.resolve(ReprocessService),
        chat=c.resolve(ChatClient),
    )
