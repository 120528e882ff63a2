from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from chatvault.config.settings import Settings, load_settings

_ENV = (
    "CHATVAULT_CONFIG",
    "CHATVAULT_DB_URL",
    "CHATVAULT_STRICTNESS",
    "CHATVAULT_ENTITY_STRICTNESS",
    "CHATVAULT_LOG_LEVEL",
    "CHATVAULT_EMBEDDINGS_DISABLED",
    "LLM_PROVIDER",
    "LLM_MODEL",
    "LLM_BASE_URL",
    "EMBEDDING_MODEL",
    "EMBEDDING_BASE_URL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_config_file():
    s = load_settings()
    assert s.memory.strictness == "balanced"
    assert s.timeouts.classify == 60
    assert s.timeouts.master_merge == 900
    assert s.limits.master_single_shot_chars == 60_000
    assert s.limits.master_chunk_chars == 50_000


def test_yaml_then_env_override(tmp_path: Path, monkeypatch):
    cfg = tmp_path / "chatvault.yaml"
    cfg.write_text(
        "database:\n  url: sqlite:///from-yaml.db\n"
        "llm:\n  provider: ollama\n  model: llama3\n"
        "memory:\n  strictness: strict\n"
        "unknown_section: ignored\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("CHATVAULT_CONFIG", str(cfg))
    monkeypatch.setenv("CHATVAULT_DB_URL", "sqlite:///from-env.db")

    s = load_settings()
    assert s.database.url == "sqlite:///from-env.db"
    assert s.llm.provider == "ollama"
    assert s.llm.model == "llama3"
    assert s.memory.strictness == "strict"


def test_missing_config_file_means_defaults(tmp_path: Path):
    s = load_settings(str(tmp_path / "nope.yaml"))
    assert s.llm.provider == "openai"


def test_embeddings_can_be_disabled_from_env(monkeypatch):
    monkeypatch.setenv("CHATVAULT_EMBEDDINGS_DISABLED", "true")
    assert load_settings().embeddings.enabled is False


def test_invalid_strictness_is_rejected():
    with pytest.raises(ValidationError):
        Settings(memory={"strictness": "paranoid"})
