from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, desc, func, select
from sqlalchemy.orm import Session

from chatvault.infrastructure.stores.models import MemoryModel
from chatvault.infrastructure.stores.sqlalchemy_db import SessionProvider


class MemoryStore:
    """
    Durable memories with idempotent insert.

    Notes:
    - No uniqueness constraint on the table: duplicates are prevented by looking
      up `message_id`, then `(session_id, content)`, before inserting.
    - `embedding` holds a JSON float array, "[]" when no vector could be produced.
    """

    def __init__(self, provider: SessionProvider):
        self._provider = provider

    def add_memory(
        self,
        *,
        content: str,
        name: Optional[str] = None,
        raw_text: Optional[str] = None,
        source_app: str = "",
        session_id: Optional[str] = None,
        message_id: Optional[int] = None,
        embedding: Optional[Sequence[float]] = None,
    ) -> Tuple[Dict[str, Any], bool]:
        """
        Returns: (row, created). An existing row is returned unchanged when found.
        """
        content = (content or "").strip()
        if not content:
            raise ValueError("memory content must not be empty")

        with self._provider.session() as session:
            existing = self._find_existing(session, message_id=message_id, session_id=session_id, content=content)
            if existing is not None:
                return self._row_to_dict(existing), False

            row = MemoryModel(
                content=content,
                name=(name or None),
                raw_text=raw_text,
                source_app=source_app or "",
                session_id=session_id,
                message_id=message_id,
                created_at=datetime.now(timezone.utc),
            )
            row.set_embedding(list(embedding or []))
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._row_to_dict(row), True

    def find_by_message_id(self, message_id: int) -> Optional[Dict[str, Any]]:
        with self._provider.session() as session:
            row = session.execute(
                select(MemoryModel).where(MemoryModel.message_id == message_id).limit(1)
            ).scalar_one_or_none()
            return self._row_to_dict(row) if row else None

    def list_memories(self, *, app_name: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        stmt = select(MemoryModel)
        if app_name:
            stmt = stmt.where(MemoryModel.source_app.ilike(f"%{app_name}%"))
        stmt = stmt.order_by(desc(MemoryModel.created_at), desc(MemoryModel.id)).limit(int(limit))
        with self._provider.session() as session:
            return [self._row_to_dict(r) for r in session.execute(stmt).scalars()]

    def list_session_memories(self, session_id: str) -> List[Dict[str, Any]]:
        stmt = select(MemoryModel).where(MemoryModel.session_id == session_id).order_by(MemoryModel.id)
        with self._provider.session() as session:
            return [self._row_to_dict(r) for r in session.execute(stmt).scalars()]

    def count(self) -> int:
        with self._provider.session() as session:
            return int(session.execute(select(func.count(MemoryModel.id))).scalar_one())

    def delete_memory(self, memory_id: int) -> bool:
        with self._provider.session() as session:
            res = session.execute(delete(MemoryModel).where(MemoryModel.id == memory_id))
            session.commit()
            return bool(res.rowcount)

    def delete_all(self) -> int:
        with self._provider.session() as session:
            res = session.execute(delete(MemoryModel))
            session.commit()
            return int(res.rowcount or 0)

    @staticmethod
    def _find_existing(
        session: Session, *, message_id: Optional[int], session_id: Optional[str], content: str
    ) -> Optional[MemoryModel]:
        if message_id is not None:
            row = session.execute(
                select(MemoryModel).where(MemoryModel.message_id == message_id).limit(1)
            ).scalar_one_or_none()
            if row is not None:
                return row
        stmt = select(MemoryModel).where(MemoryModel.content == content)
        if session_id is None:
            stmt = stmt.where(MemoryModel.session_id.is_(None))
        else:
            stmt = stmt.where(MemoryModel.session_id == session_id)
        return session.execute(stmt.limit(1)).scalar_one_or_none()

    @staticmethod
    def _row_to_dict(r: MemoryModel) -> Dict[str, Any]:
        return {
            "id": r.id,
            "content": r.content,
            "name": r.name,
            "raw_text": r.raw_text,
            "source_app": r.source_app,
            "session_id": r.session_id,
            "message_id": r.message_id,
            "has_embedding": bool(r.get_embedding()),
            "created_at": r.created_at.isoformat() if r.created_at else None,
        }
