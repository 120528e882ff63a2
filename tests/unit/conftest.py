from __future__ import annotations

from pathlib import Path

import pytest

from chatvault.application.wiring import build_services
from chatvault.config.settings import Settings
from chatvault.infrastructure.embeddings import EmbeddingService
from chatvault.infrastructure.event_log import InMemoryEventLog
from chatvault.infrastructure.llm.router import ModelRouter
from chatvault.infrastructure.stores import SessionProvider, create_schema

from .fakes import FakeEmbeddingProvider, FakeProvider


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'vault.db'}"


@pytest.fixture
def provider(db_url):
    p = SessionProvider(db_url)
    create_schema(p.engine)
    yield p
    p.dispose()


@pytest.fixture
def settings(db_url) -> Settings:
    return Settings(database={"url": db_url}, embeddings={"enabled": False})


@pytest.fixture
def fake_llm() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def fake_embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def event_log() -> InMemoryEventLog:
    return InMemoryEventLog()


@pytest.fixture
def router(settings, fake_llm) -> ModelRouter:
    r = ModelRouter.from_settings(settings.llm)
    r.register_provider("default", fake_llm)
    return r


@pytest.fixture
def services(settings, router, fake_embedder, event_log):
    svc = build_services(
        settings,
        router=router,
        embeddings=EmbeddingService(fake_embedder),
        event_log=event_log,
    )
    yield svc
    svc.close()
