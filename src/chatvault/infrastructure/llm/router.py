# src/chatvault/infrastructure/llm/router.py
"""
Model Router

Maps each call type to a configured provider. By default every task shares
one local model; a YAML file can split them (e.g. a larger model for
master-memory merges).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from chatvault.config.settings import LLMConfig

from .providers.base import LLMProvider

logger = logging.getLogger(__name__)


class TaskType(str, Enum):
    """Call types; each has its own timeout budget."""
    DEFAULT = "default"
    CLASSIFY = "classify"              # memory filter
    EXTRACTION = "extraction"          # entity extraction
    ENTITY_SUMMARY = "entity_summary"  # running entity summary
    SUMMARY = "summary"                # session summary
    MASTER_MERGE = "master_merge"      # master memory
    CHAT = "chat"                      # retrieval-augmented answer


@dataclass
class ModelConfig:
    """
    Attributes:
        provider: openai / ollama
        model: model name
        api_key_env: env var holding the API key
        base_url: custom API base (local servers)
        max_tokens: default output budget
    """
    provider: str
    model: str
    api_key_env: str = "LLM_API_KEY"
    base_url: Optional[str] = None
    max_tokens: int = 2048


@dataclass
class RouterConfig:
    models: Dict[str, ModelConfig] = field(default_factory=dict)
    fallback_model: str = "default"


class ModelRouter:
    """
    Task-type -> provider router with a provider cache.

    ```python
    router = ModelRouter.from_settings(settings.llm)
    provider = router.get_provider(TaskType.CLASSIFY)
    ```
    """

    DEFAULT_ROUTING = {task.value: "default" for task in TaskType}

    def __init__(self, config: RouterConfig):
        self.config = config
        self._providers: Dict[str, LLMProvider] = {}
        self._task_routing: Dict[str, str] = dict(self.DEFAULT_ROUTING)
        logger.info("ModelRouter initialised with %d model config(s)", len(config.models))

    def get_provider(self, task_type: str = TaskType.DEFAULT) -> LLMProvider:
        key = task_type.value if isinstance(task_type, TaskType) else str(task_type)
        config_name = self._task_routing.get(key, self.config.fallback_model)

        if config_name in self._providers:
            return self._providers[config_name]

        model_config = self.config.models.get(config_name)
        if not model_config:
            model_config = self.config.models.get(self.config.fallback_model)
            if not model_config:
                raise ValueError(f"No model config for: {config_name}")

        provider = self._create_provider(model_config)
        self._providers[config_name] = provider
        return provider

    def _create_provider(self, config: ModelConfig) -> LLMProvider:
        if config.provider == "openai":
            from .providers.openai_provider import OpenAIProvider
            api_key = os.getenv(config.api_key_env, "")
            if not api_key and config.base_url:
                # local OpenAI-compatible servers accept any key
                api_key = "local"
            return OpenAIProvider(
                api_key=api_key,
                model_name=config.model,
                base_url=config.base_url,
                max_tokens=config.max_tokens,
            )

        elif config.provider == "ollama":
            from .providers.ollama_provider import OllamaProvider
            return OllamaProvider(
                model_name=config.model,
                base_url=config.base_url or OllamaProvider.DEFAULT_BASE_URL,
                max_tokens=config.max_tokens,
            )

        else:
            raise ValueError(f"Unknown provider type: {config.provider}")

    def set_task_routing(self, task_type: str, config_name: str) -> None:
        self._task_routing[str(task_type)] = config_name

    def register_provider(self, config_name: str, provider: LLMProvider) -> None:
        """Install a ready-made provider (tests, embedded servers)."""
        self._providers[config_name] = provider

    def list_models(self) -> Dict[str, str]:
        return {
            name: f"{cfg.provider}:{cfg.model}"
            for name, cfg in self.config.models.items()
        }

    @classmethod
    def from_settings(cls, llm: LLMConfig) -> "ModelRouter":
        config = RouterConfig(
            models={
                "default": ModelConfig(
                    provider=llm.provider,
                    model=llm.model,
                    api_key_env=llm.api_key_env,
                    base_url=llm.base_url,
                    max_tokens=llm.max_tokens,
                ),
            },
            fallback_model="default",
        )
        return cls(config)

    @classmethod
    def from_yaml(cls, path: str) -> "ModelRouter":
        import yaml

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        models = {}
        for name, cfg in data.get("providers", {}).items():
            models[name] = ModelConfig(
                provider=cfg.get("provider", "openai"),
                model=cfg.get("model", "local-model"),
                api_key_env=cfg.get("api_key_env", "LLM_API_KEY"),
                base_url=cfg.get("base_url"),
                max_tokens=cfg.get("max_tokens", 2048),
            )

        router = cls(RouterConfig(models=models, fallback_model=data.get("fallback", "default")))

        for task, model_name in data.get("task_routing", {}).items():
            router.set_task_routing(task, model_name)

        return router
