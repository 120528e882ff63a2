from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from chatvault.infrastructure.stores.models import ChatSummaryModel, MasterMemoryModel
from chatvault.infrastructure.stores.sqlalchemy_db import SessionProvider

MASTER_ID = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SummaryStore:
    """
    Per-session summaries and the singleton master memory.

    Both are replaced wholesale on every write; there is no history.
    """

    def __init__(self, provider: SessionProvider):
        self._provider = provider

    def upsert_summary(self, session_id: str, summary: str) -> None:
        now = _utcnow()
        with self._provider.session() as session:
            row = session.execute(
                select(ChatSummaryModel).where(ChatSummaryModel.session_id == session_id)
            ).scalar_one_or_none()
            if row is None:
                session.add(ChatSummaryModel(session_id=session_id, summary=summary, created_at=now, updated_at=now))
            else:
                row.summary = summary
                row.updated_at = now
            session.commit()

    def get_summary(self, session_id: str) -> Optional[str]:
        with self._provider.session() as session:
            return session.execute(
                select(ChatSummaryModel.summary).where(ChatSummaryModel.session_id == session_id)
            ).scalar_one_or_none()

    def list_summaries(self) -> List[Dict[str, Any]]:
        """Non-empty summaries in first-summarized order."""
        with self._provider.session() as session:
            rows = session.execute(select(ChatSummaryModel).order_by(ChatSummaryModel.id)).scalars()
            return [
                {"session_id": r.session_id, "summary": r.summary, "updated_at": r.updated_at.isoformat()}
                for r in rows
                if (r.summary or "").strip()
            ]

    def get_master(self) -> Dict[str, Any]:
        with self._provider.session() as session:
            row = session.get(MasterMemoryModel, MASTER_ID)
            if row is None:
                return {"content": None, "updated_at": None}
            return {"content": row.content, "updated_at": row.updated_at.isoformat() if row.updated_at else None}

    def set_master(self, content: str) -> None:
        with self._provider.session() as session:
            row = session.get(MasterMemoryModel, MASTER_ID)
            if row is None:
                session.add(MasterMemoryModel(id=MASTER_ID, content=content, updated_at=_utcnow()))
            else:
                row.content = content
                row.updated_at = _utcnow()
            session.commit()

    def clear_master(self) -> None:
        self.set_master("")
