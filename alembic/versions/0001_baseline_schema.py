"""baseline schema

Revision ID: 0001_baseline_schema
Revises: None
Create Date: 2026-10-19

Creates the capture, memory, graph and summary tables plus the FTS5 shadow
indexes and their sync triggers. Databases created by `create_schema()` in
dev are picked up as-is: existing tables are skipped in online mode.
"""

from __future__ import annotations

from alembic import context, op
import sqlalchemy as sa


revision = "0001_baseline_schema"
down_revision = None
branch_labels = None
depends_on = None


def _is_offline() -> bool:
    return bool(context.is_offline_mode())


def _has_table(name: str) -> bool:
    return sa.inspect(op.get_bind()).has_table(name)


def _needs(name: str) -> bool:
    return _is_offline() or not _has_table(name)


def _timestamps(*names: str) -> list:
    return [sa.Column(n, sa.DateTime(timezone=True), nullable=True) for n in names]


def upgrade() -> None:
    if _needs("conversations"):
        op.create_table(
            "conversations",
            sa.Column("id", sa.String(length=128), primary_key=True),
            sa.Column("title", sa.Text(), server_default="", nullable=False),
            sa.Column("app_name", sa.String(length=128), server_default="", nullable=False),
            *_timestamps("created_at", "updated_at"),
        )
        op.create_index("ix_conversations_app_name", "conversations", ["app_name"])
        op.create_index("ix_conversations_updated_at", "conversations", ["updated_at"])

    if _needs("messages"):
        op.create_table(
            "messages",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(
                "conversation_id",
                sa.String(length=128),
                sa.ForeignKey("conversations.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("role", sa.String(length=16), server_default="user", nullable=False),
            sa.Column("content", sa.Text(), server_default="", nullable=False),
            sa.Column("timestamp", sa.String(length=64), nullable=True),
            *_timestamps("created_at"),
        )
        op.create_index("ix_messages_conversation_id", "messages", ["conversation_id"])

    if _needs("memories"):
        op.create_table(
            "memories",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("name", sa.String(length=256), nullable=True),
            sa.Column("raw_text", sa.Text(), nullable=True),
            sa.Column("source_app", sa.String(length=128), server_default="", nullable=False),
            sa.Column("session_id", sa.String(length=128), nullable=True),
            sa.Column("message_id", sa.Integer(), nullable=True),
            sa.Column("embedding", sa.Text(), server_default="[]", nullable=False),
            *_timestamps("created_at"),
        )
        op.create_index("ix_memories_source_app", "memories", ["source_app"])
        op.create_index("ix_memories_session_id", "memories", ["session_id"])
        op.create_index("ix_memories_message_id", "memories", ["message_id"])
        op.create_index("ix_memories_created_at", "memories", ["created_at"])

    if _needs("entities"):
        op.create_table(
            "entities",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("name", sa.String(length=256, collation="NOCASE"), nullable=False),
            sa.Column("type", sa.String(length=64), server_default="Unknown", nullable=False),
            sa.Column("summary", sa.Text(), nullable=True),
            *_timestamps("created_at", "updated_at"),
            sa.UniqueConstraint("name", "type", name="uq_entities_name_type"),
        )
        op.create_index("ix_entities_updated_at", "entities", ["updated_at"])

    if _needs("entity_facts"):
        op.create_table(
            "entity_facts",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("entity_id", sa.Integer(), sa.ForeignKey("entities.id", ondelete="CASCADE"), nullable=False),
            sa.Column("fact", sa.Text(), nullable=False),
            sa.Column("source_session_id", sa.String(length=128), nullable=True),
            *_timestamps("created_at"),
            sa.UniqueConstraint("entity_id", "fact", name="uq_entity_facts_entity_fact"),
        )
        op.create_index("ix_entity_facts_entity_id", "entity_facts", ["entity_id"])
        op.create_index("ix_entity_facts_source_session_id", "entity_facts", ["source_session_id"])

    if _needs("entity_sessions"):
        op.create_table(
            "entity_sessions",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("entity_id", sa.Integer(), sa.ForeignKey("entities.id", ondelete="CASCADE"), nullable=False),
            sa.Column("session_id", sa.String(length=128), nullable=False),
            *_timestamps("created_at"),
            sa.UniqueConstraint("entity_id", "session_id", name="uq_entity_sessions_pair"),
        )
        op.create_index("ix_entity_sessions_entity_id", "entity_sessions", ["entity_id"])
        op.create_index("ix_entity_sessions_session_id", "entity_sessions", ["session_id"])

    if _needs("entity_edges"):
        op.create_table(
            "entity_edges",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(
                "source_entity_id", sa.Integer(), sa.ForeignKey("entities.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column(
                "target_entity_id", sa.Integer(), sa.ForeignKey("entities.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("type", sa.String(length=32), server_default="cooccurrence", nullable=False),
            sa.Column("weight", sa.Float(), server_default="0", nullable=False),
            sa.Column("evidence_count", sa.Integer(), server_default="0", nullable=False),
            sa.Column("last_session_id", sa.String(length=128), nullable=True),
            *_timestamps("updated_at"),
            sa.UniqueConstraint("source_entity_id", "target_entity_id", "type", name="uq_entity_edges_triple"),
        )
        op.create_index("ix_entity_edges_source_entity_id", "entity_edges", ["source_entity_id"])
        op.create_index("ix_entity_edges_target_entity_id", "entity_edges", ["target_entity_id"])

    if _needs("chat_summaries"):
        op.create_table(
            "chat_summaries",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("session_id", sa.String(length=128), nullable=False, unique=True),
            sa.Column("summary", sa.Text(), server_default="", nullable=False),
            *_timestamps("created_at", "updated_at"),
        )
        op.create_index("ix_chat_summaries_session_id", "chat_summaries", ["session_id"])

    if _needs("master_memory"):
        op.create_table(
            "master_memory",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("content", sa.Text(), server_default="", nullable=False),
            *_timestamps("updated_at"),
            sa.CheckConstraint("id = 1", name="ck_master_memory_singleton"),
        )

    if _needs("app_settings"):
        op.create_table(
            "app_settings",
            sa.Column("key", sa.String(length=128), primary_key=True),
            sa.Column("value_json", sa.Text(), server_default="null", nullable=False),
            *_timestamps("updated_at"),
        )

    # FTS5 shadow tables and triggers; IF NOT EXISTS throughout
    from chatvault.infrastructure.stores.fts import FTS_INDEXES

    for idx in FTS_INDEXES:
        op.execute(idx.create_sql())
        for stmt in idx.trigger_sql():
            op.execute(stmt)
    if not _is_offline():
        for idx in FTS_INDEXES:
            op.execute(idx.rebuild_sql())


def downgrade() -> None:
    from chatvault.infrastructure.stores.fts import FTS_INDEXES

    for idx in FTS_INDEXES:
        for stmt in idx.drop_sql():
            op.execute(stmt)

    for table in (
        "app_settings",
        "master_memory",
        "chat_summaries",
        "entity_edges",
        "entity_sessions",
        "entity_facts",
        "entities",
        "memories",
        "messages",
        "conversations",
    ):
        op.drop_table(table)
