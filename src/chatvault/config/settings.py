"""
Pydantic-validated settings.

Load order: model defaults -> optional YAML file -> environment overrides.
Runtime overrides (strictness tiers, prompt templates) live in the app_settings
table and are read through SettingsStore, not here.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

Strictness = Literal["lenient", "balanced", "strict"]

DEFAULT_DB_URL = "sqlite:///data/chatvault.db"


class _Section(BaseModel):
    model_config = ConfigDict(extra="ignore")


class DatabaseConfig(_Section):
    url: str = DEFAULT_DB_URL


class LLMConfig(_Section):
    provider: Literal["openai", "ollama"] = "openai"
    model: str = "local-model"
    # llama-server / vLLM / LM Studio all expose an OpenAI compatible /v1
    base_url: Optional[str] = "http://127.0.0.1:8080/v1"
    api_key_env: str = "LLM_API_KEY"
    max_tokens: int = 2048
    temperature: float = 0.2


class EmbeddingSettings(_Section):
    enabled: bool = True
    model: str = "all-MiniLM-L6-v2"
    base_url: Optional[str] = "http://127.0.0.1:8081/v1"
    api_key_env: str = "EMBEDDING_API_KEY"


class TimeoutConfig(_Section):
    """Per-call budgets in seconds."""

    classify: float = 60.0
    extract: float = 90.0
    entity_summary: float = 90.0
    summarize: float = 300.0
    master_merge: float = 900.0
    chat: float = 180.0


class MemoryConfig(_Section):
    strictness: Strictness = "balanced"
    entity_strictness: Strictness = "balanced"


class LimitsConfig(_Section):
    master_single_shot_chars: int = 60_000
    master_chunk_chars: int = 50_000
    session_message_limit: int = 200


class LoggingConfig(_Section):
    level: str = "INFO"


class Settings(_Section):
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    embeddings: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# env var -> (section, key)
_ENV_OVERRIDES: Dict[str, tuple[str, str]] = {
    "CHATVAULT_DB_URL": ("database", "url"),
    "CHATVAULT_STRICTNESS": ("memory", "strictness"),
    "CHATVAULT_ENTITY_STRICTNESS": ("memory", "entity_strictness"),
    "CHATVAULT_LOG_LEVEL": ("logging", "level"),
    "LLM_PROVIDER": ("llm", "provider"),
    "LLM_MODEL": ("llm", "model"),
    "LLM_BASE_URL": ("llm", "base_url"),
    "EMBEDDING_MODEL": ("embeddings", "model"),
    "EMBEDDING_BASE_URL": ("embeddings", "base_url"),
}


def _apply_env(data: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            data.setdefault(section, {})[key] = value
    if os.getenv("CHATVAULT_EMBEDDINGS_DISABLED", "").lower() in ("1", "true", "yes"):
        data.setdefault("embeddings", {})["enabled"] = False
    return data


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Validate and return settings; a missing YAML file just means defaults."""
    path = config_path or os.getenv("CHATVAULT_CONFIG")
    data: Dict[str, Any] = {}
    if path:
        cfg_file = Path(path).expanduser()
        if cfg_file.exists():
            data = yaml.safe_load(cfg_file.read_text(encoding="utf-8")) or {}
    return Settings(**_apply_env(data))
