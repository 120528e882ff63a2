from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import text

from chatvault.infrastructure.stores.fts import rebuild_fts
from chatvault.infrastructure.stores.sqlalchemy_db import SessionProvider

logger = logging.getLogger(__name__)


def _like(app_name: Optional[str]) -> Optional[str]:
    return f"%{app_name}%" if app_name else None


class SearchIndex:
    """
    Read side of the store: BM25 full-text search over the five FTS5 indexes
    plus cosine vector search over memory embeddings.

    Every query takes an already-escaped FTS5 MATCH expression. All searches
    accept an optional app-name filter, joined back to `conversations` where the
    source row has no app column of its own.
    """

    def __init__(self, provider: SessionProvider):
        self._provider = provider

    def _fetch(self, sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._provider.engine.connect() as conn:
            return [dict(r._mapping) for r in conn.execute(text(sql), params)]

    def search_memories(self, fts_query: str, *, app_name: Optional[str] = None, limit: int = 12) -> List[Dict[str, Any]]:
        sql = """
            SELECT m.id, m.content, m.name, m.source_app, m.session_id, m.message_id, m.created_at,
                   bm25(memory_fts) AS rank
            FROM memory_fts
            JOIN memories m ON m.id = memory_fts.rowid
            WHERE memory_fts MATCH :q
              AND (:app IS NULL OR m.source_app LIKE :app)
            ORDER BY rank
            LIMIT :limit
        """
        return self._fetch(sql, {"q": fts_query, "app": _like(app_name), "limit": int(limit)})

    def search_memories_by_vector(
        self,
        vector: Sequence[float],
        *,
        app_name: Optional[str] = None,
        limit: int = 12,
        min_score: float = 0.2,
    ) -> List[Dict[str, Any]]:
        sql = """
            SELECT * FROM (
                SELECT m.id, m.content, m.name, m.source_app, m.session_id, m.message_id, m.created_at,
                       cosine_similarity(m.embedding, :vec) AS score
                FROM memories m
                WHERE m.embedding IS NOT NULL AND m.embedding != '[]'
                  AND (:app IS NULL OR m.source_app LIKE :app)
            )
            WHERE score >= :min_score
            ORDER BY score DESC
            LIMIT :limit
        """
        params = {
            "vec": json.dumps([float(x) for x in vector]),
            "app": _like(app_name),
            "min_score": float(min_score),
            "limit": int(limit),
        }
        return self._fetch(sql, params)

    def search_messages(self, fts_query: str, *, app_name: Optional[str] = None, limit: int = 12) -> List[Dict[str, Any]]:
        sql = """
            SELECT msg.id, msg.conversation_id AS session_id, msg.role, msg.content, msg.timestamp,
                   c.title, c.app_name, bm25(message_fts) AS rank
            FROM message_fts
            JOIN messages msg ON msg.id = message_fts.rowid
            JOIN conversations c ON c.id = msg.conversation_id
            WHERE message_fts MATCH :q
              AND (:app IS NULL OR c.app_name LIKE :app)
            ORDER BY rank
            LIMIT :limit
        """
        return self._fetch(sql, {"q": fts_query, "app": _like(app_name), "limit": int(limit)})

    def search_summaries(self, fts_query: str, *, app_name: Optional[str] = None, limit: int = 8) -> List[Dict[str, Any]]:
        sql = """
            SELECT s.session_id, s.summary, c.title, c.app_name, bm25(summary_fts) AS rank
            FROM summary_fts
            JOIN chat_summaries s ON s.id = summary_fts.rowid
            LEFT JOIN conversations c ON c.id = s.session_id
            WHERE summary_fts MATCH :q
              AND (:app IS NULL OR c.app_name LIKE :app)
            ORDER BY rank
            LIMIT :limit
        """
        return self._fetch(sql, {"q": fts_query, "app": _like(app_name), "limit": int(limit)})

    def search_entities(self, fts_query: str, *, app_name: Optional[str] = None, limit: int = 8) -> List[Dict[str, Any]]:
        sql = """
            SELECT e.id, e.name, e.type, e.summary, bm25(entity_fts) AS rank
            FROM entity_fts
            JOIN entities e ON e.id = entity_fts.rowid
            WHERE entity_fts MATCH :q
              AND (:app IS NULL OR EXISTS (
                    SELECT 1 FROM entity_sessions es
                    JOIN conversations c ON c.id = es.session_id
                    WHERE es.entity_id = e.id AND c.app_name LIKE :app))
            ORDER BY rank
            LIMIT :limit
        """
        return self._fetch(sql, {"q": fts_query, "app": _like(app_name), "limit": int(limit)})

    def search_facts(self, fts_query: str, *, app_name: Optional[str] = None, limit: int = 8) -> List[Dict[str, Any]]:
        sql = """
            SELECT f.id, f.entity_id, e.name AS entity_name, e.type AS entity_type, f.fact,
                   f.source_session_id, bm25(fact_fts) AS rank
            FROM fact_fts
            JOIN entity_facts f ON f.id = fact_fts.rowid
            JOIN entities e ON e.id = f.entity_id
            LEFT JOIN conversations c ON c.id = f.source_session_id
            WHERE fact_fts MATCH :q
              AND (:app IS NULL OR c.app_name LIKE :app)
            ORDER BY rank
            LIMIT :limit
        """
        return self._fetch(sql, {"q": fts_query, "app": _like(app_name), "limit": int(limit)})

    def rebuild(self) -> List[str]:
        return rebuild_fts(self._provider.engine)
