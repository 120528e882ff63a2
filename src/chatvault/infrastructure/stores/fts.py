"""
FTS5 shadow indexes over the source tables.

Each index is an external-content FTS5 table kept consistent by AFTER
INSERT/UPDATE/DELETE triggers; `rebuild_fts` re-derives every index from its
source table when the two have drifted apart.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from .models import Base

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FtsIndex:
    name: str
    source: str
    columns: Sequence[str]

    def create_sql(self) -> str:
        cols = ", ".join(self.columns)
        return (
            f"CREATE VIRTUAL TABLE IF NOT EXISTS {self.name} "
            f"USING fts5({cols}, content='{self.source}', content_rowid='id')"
        )

    def trigger_sql(self) -> List[str]:
        cols = ", ".join(self.columns)
        new_vals = ", ".join(f"new.{c}" for c in self.columns)
        old_vals = ", ".join(f"old.{c}" for c in self.columns)
        insert_new = f"INSERT INTO {self.name}(rowid, {cols}) VALUES (new.id, {new_vals});"
        delete_old = (
            f"INSERT INTO {self.name}({self.name}, rowid, {cols}) VALUES ('delete', old.id, {old_vals});"
        )
        return [
            f"CREATE TRIGGER IF NOT EXISTS {self.source}_fts_ai AFTER INSERT ON {self.source} BEGIN "
            f"{insert_new} END",
            f"CREATE TRIGGER IF NOT EXISTS {self.source}_fts_ad AFTER DELETE ON {self.source} BEGIN "
            f"{delete_old} END",
            f"CREATE TRIGGER IF NOT EXISTS {self.source}_fts_au AFTER UPDATE ON {self.source} BEGIN "
            f"{delete_old} {insert_new} END",
        ]

    def rebuild_sql(self) -> str:
        return f"INSERT INTO {self.name}({self.name}) VALUES ('rebuild')"

    def drop_sql(self) -> List[str]:
        return [
            f"DROP TRIGGER IF EXISTS {self.source}_fts_ai",
            f"DROP TRIGGER IF EXISTS {self.source}_fts_ad",
            f"DROP TRIGGER IF EXISTS {self.source}_fts_au",
            f"DROP TABLE IF EXISTS {self.name}",
        ]


FTS_INDEXES: List[FtsIndex] = [
    FtsIndex("memory_fts", "memories", ("content", "name")),
    FtsIndex("message_fts", "messages", ("content",)),
    FtsIndex("summary_fts", "chat_summaries", ("summary",)),
    FtsIndex("entity_fts", "entities", ("name", "summary")),
    FtsIndex("fact_fts", "entity_facts", ("fact",)),
]


def install_fts(conn: Connection) -> None:
    for idx in FTS_INDEXES:
        conn.execute(text(idx.create_sql()))
        for stmt in idx.trigger_sql():
            conn.execute(text(stmt))


def ensure_fts(engine: Engine) -> None:
    with engine.begin() as conn:
        install_fts(conn)


def rebuild_fts(engine: Engine) -> List[str]:
    """Recovery path for a desynced index. Returns the rebuilt index names."""
    rebuilt: List[str] = []
    with engine.begin() as conn:
        for idx in FTS_INDEXES:
            conn.execute(text(idx.rebuild_sql()))
            rebuilt.append(idx.name)
    logger.info("Rebuilt FTS indexes: %s", ", ".join(rebuilt))
    return rebuilt


def create_schema(engine: Engine) -> None:
    """Dev/test convenience; production databases go through Alembic."""
    Base.metadata.create_all(engine)
    ensure_fts(engine)
