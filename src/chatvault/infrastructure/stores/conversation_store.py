from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, desc, func, select

from chatvault.infrastructure.stores.models import (
    ChatSummaryModel,
    ConversationModel,
    EntitySessionModel,
    MemoryModel,
    MessageModel,
)
from chatvault.infrastructure.stores.sqlalchemy_db import SessionProvider
from chatvault.memory.schema import CapturedMessage


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


class ConversationStore:
    """
    Conversations and their append-only message history.

    Messages are never edited once written; the capture path only appends.
    """

    def __init__(self, provider: SessionProvider):
        self._provider = provider

    def upsert_conversation(self, *, session_id: str, title: str, app_name: str) -> None:
        now = _utcnow()
        with self._provider.session() as session:
            row = session.get(ConversationModel, session_id)
            if row is None:
                session.add(
                    ConversationModel(
                        id=session_id,
                        title=title or "",
                        app_name=app_name or "",
                        created_at=now,
                        updated_at=now,
                    )
                )
            else:
                row.updated_at = now
            session.commit()

    def get_conversation(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._provider.session() as session:
            row = session.get(ConversationModel, session_id)
            if row is None:
                return None
            return self._conversation_to_dict(row)

    def list_conversations(self, *, app_name: Optional[str] = None, limit: int = 200) -> List[Dict[str, Any]]:
        message_count = (
            select(func.count(MessageModel.id))
            .where(MessageModel.conversation_id == ConversationModel.id)
            .correlate(ConversationModel)
            .scalar_subquery()
        )
        summary = (
            select(ChatSummaryModel.summary)
            .where(ChatSummaryModel.session_id == ConversationModel.id)
            .correlate(ConversationModel)
            .scalar_subquery()
        )
        stmt = select(ConversationModel, message_count, summary)
        if app_name:
            stmt = stmt.where(ConversationModel.app_name.ilike(f"%{app_name}%"))
        stmt = stmt.order_by(desc(ConversationModel.updated_at)).limit(int(limit))
        with self._provider.session() as session:
            out = []
            for row, count, text in session.execute(stmt).all():
                d = self._conversation_to_dict(row)
                d["message_count"] = int(count or 0)
                d["summary"] = text
                out.append(d)
            return out

    def counts(self) -> Dict[str, int]:
        with self._provider.session() as session:
            return {
                "conversations": int(session.execute(select(func.count(ConversationModel.id))).scalar_one()),
                "messages": int(session.execute(select(func.count(MessageModel.id))).scalar_one()),
            }

    def list_session_ids(self) -> List[str]:
        with self._provider.session() as session:
            rows = session.execute(select(ConversationModel.id).order_by(ConversationModel.created_at)).scalars()
            return list(rows)

    def list_messages(self, session_id: str, *, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Stored messages oldest-first (insertion order)."""
        stmt = select(MessageModel).where(MessageModel.conversation_id == session_id).order_by(MessageModel.id)
        if limit is not None:
            stmt = stmt.limit(int(limit))
        with self._provider.session() as session:
            return [self._message_to_dict(r) for r in session.execute(stmt).scalars()]

    def append_messages(self, session_id: str, messages: Iterable[CapturedMessage]) -> List[Dict[str, Any]]:
        """Insert in order, skipping empty content. Returns the inserted rows."""
        now = _utcnow()
        rows: List[MessageModel] = []
        with self._provider.session() as session:
            for m in messages:
                if not m.content:
                    continue
                row = MessageModel(
                    conversation_id=session_id,
                    role=m.role.lower(),
                    content=m.content,
                    timestamp=m.timestamp or None,
                    created_at=now,
                )
                session.add(row)
                rows.append(row)
            session.commit()
            return [self._message_to_dict(r) for r in rows]

    def delete_conversation(self, session_id: str) -> bool:
        """
        Remove a conversation with everything derived from it.

        Deletes messages, memories, the chat summary and entity-session links.
        Entity facts keep their provenance id; edges are left for the next rebuild.
        """
        with self._provider.session() as session:
            existed = session.get(ConversationModel, session_id) is not None
            session.execute(delete(MessageModel).where(MessageModel.conversation_id == session_id))
            session.execute(delete(MemoryModel).where(MemoryModel.session_id == session_id))
            session.execute(delete(ChatSummaryModel).where(ChatSummaryModel.session_id == session_id))
            session.execute(delete(EntitySessionModel).where(EntitySessionModel.session_id == session_id))
            session.execute(delete(ConversationModel).where(ConversationModel.id == session_id))
            session.commit()
            return existed

    @staticmethod
    def _conversation_to_dict(r: ConversationModel) -> Dict[str, Any]:
        return {
            "session_id": r.id,
            "title": r.title,
            "app_name": r.app_name,
            "created_at": _iso(r.created_at),
            "updated_at": _iso(r.updated_at),
        }

    @staticmethod
    def _message_to_dict(r: MessageModel) -> Dict[str, Any]:
        return {
            "id": r.id,
            "session_id": r.conversation_id,
            "role": r.role,
            "content": r.content,
            "timestamp": r.timestamp,
            "created_at": _iso(r.created_at),
        }
