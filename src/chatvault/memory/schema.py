from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class CaptureEvent:
    """One full-state snapshot of a chat window, never a delta."""

    app_name: str
    title: Optional[str]
    raw_text: str


@dataclass(frozen=True)
class CapturedMessage:
    role: str
    content: str
    timestamp: Optional[str] = None


# ---- structured model output ----


class MemoryVerdict(BaseModel):
    model_config = ConfigDict(extra="ignore")

    store: bool = False
    name: str = ""
    memory: str = ""

    @field_validator("name", "memory", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        return "" if v is None else str(v).strip()


class ExtractedEntity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    type: str = "Unknown"
    facts: List[str] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, v):
        return " ".join(str(v or "").split())

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, v):
        return str(v or "").strip() or "Unknown"

    @field_validator("facts", mode="before")
    @classmethod
    def _coerce_facts(cls, v):
        if not isinstance(v, list):
            return []
        return [str(f).strip() for f in v if f is not None and str(f).strip()]


class EntityExtraction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    entities: List[ExtractedEntity] = Field(default_factory=list)
