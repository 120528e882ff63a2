from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from chatvault.memory.vectors import parse_vector, to_json


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class ConversationModel(Base):
    __tablename__ = "conversations"

    # "{app}-{normalized title}", stable across repeated captures
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    title: Mapped[str] = mapped_column(Text, default="")
    app_name: Mapped[str] = mapped_column(String(128), default="", index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)

    messages = relationship(
        "MessageModel",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="MessageModel.id",
    )


class MessageModel(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("conversations.id", ondelete="CASCADE"), index=True
    )
    role: Mapped[str] = mapped_column(String(16), default="user")
    content: Mapped[str] = mapped_column(Text, default="")
    # platform supplied, e.g. "6:57 PM"
    timestamp: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    conversation = relationship("ConversationModel", back_populates="messages")


class MemoryModel(Base):
    """
    One durable statement.

    No unique constraint: at most one row per message_id and per (session_id, content)
    is enforced by lookup-before-insert in MemoryStore.
    """

    __tablename__ = "memories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text)
    name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    raw_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_app: Mapped[str] = mapped_column(String(128), default="", index=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    message_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    # JSON float array; "[]" means no vector
    embedding: Mapped[str] = mapped_column(Text, default="[]")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)

    def set_embedding(self, vector: List[float]) -> None:
        self.embedding = to_json(vector)

    def get_embedding(self) -> List[float]:
        return parse_vector(self.embedding)


class EntityModel(Base):
    __tablename__ = "entities"
    __table_args__ = (UniqueConstraint("name", "type", name="uq_entities_name_type"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256, collation="NOCASE"))
    type: Mapped[str] = mapped_column(String(64), default="Unknown")
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)

    facts = relationship(
        "EntityFactModel", back_populates="entity", cascade="all, delete-orphan", passive_deletes=True
    )


class EntityFactModel(Base):
    __tablename__ = "entity_facts"
    __table_args__ = (UniqueConstraint("entity_id", "fact", name="uq_entity_facts_entity_fact"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_id: Mapped[int] = mapped_column(Integer, ForeignKey("entities.id", ondelete="CASCADE"), index=True)
    fact: Mapped[str] = mapped_column(Text)
    source_session_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    entity = relationship("EntityModel", back_populates="facts")


class EntitySessionModel(Base):
    __tablename__ = "entity_sessions"
    __table_args__ = (UniqueConstraint("entity_id", "session_id", name="uq_entity_sessions_pair"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_id: Mapped[int] = mapped_column(Integer, ForeignKey("entities.id", ondelete="CASCADE"), index=True)
    session_id: Mapped[str] = mapped_column(String(128), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class EntityEdgeModel(Base):
    """Co-occurrence edge, stored with source_entity_id < target_entity_id."""

    __tablename__ = "entity_edges"
    __table_args__ = (
        UniqueConstraint("source_entity_id", "target_entity_id", "type", name="uq_entity_edges_triple"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_entity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("entities.id", ondelete="CASCADE"), index=True
    )
    target_entity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("entities.id", ondelete="CASCADE"), index=True
    )
    type: Mapped[str] = mapped_column(String(32), default="cooccurrence")
    weight: Mapped[float] = mapped_column(Float, default=0.0)
    evidence_count: Mapped[int] = mapped_column(Integer, default=0)
    last_session_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class ChatSummaryModel(Base):
    __tablename__ = "chat_summaries"

    # integer rowid keeps the FTS external-content mapping stable across VACUUM
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    summary: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class MasterMemoryModel(Base):
    __tablename__ = "master_memory"
    __table_args__ = (CheckConstraint("id = 1", name="ck_master_memory_singleton"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    content: Mapped[str] = mapped_column(Text, default="")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class AppSettingModel(Base):
    """Runtime key/value overrides (strictness tiers, prompt:<key> templates)."""

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, default="null")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    def set_value(self, value: Any) -> None:
        self.value_json = json.dumps(value, ensure_ascii=False)

    def get_value(self) -> Any:
        try:
            return json.loads(self.value_json or "null")
        except ValueError:
            return None
