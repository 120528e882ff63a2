from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime, timezone
from itertools import combinations
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import delete, desc, exists, func, select
from sqlalchemy.orm import Session

from chatvault.infrastructure.stores.models import (
    ConversationModel,
    EntityEdgeModel,
    EntityFactModel,
    EntityModel,
    EntitySessionModel,
)
from chatvault.infrastructure.stores.sqlalchemy_db import SessionProvider

COOCCURRENCE = "cooccurrence"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def edge_weight(evidence_count: int) -> float:
    """Monotonic non-decreasing in evidence_count; 0 for no evidence."""
    return round(math.log1p(max(0, int(evidence_count))), 6)


def canonical_pair(a: int, b: int) -> Tuple[int, int]:
    return (a, b) if a < b else (b, a)


class GraphStore:
    """
    Entities, facts, entity-session links and co-occurrence edges.

    Edge evidence is the number of distinct sessions in which both endpoints
    appear, derived from `entity_sessions`; recomputing it is idempotent.
    """

    def __init__(self, provider: SessionProvider):
        self._provider = provider

    # ---- nodes ----

    def upsert_entity(self, name: str, type_: str) -> Tuple[int, bool]:
        """Returns (entity_id, created). Name match is case-insensitive."""
        name = " ".join((name or "").split())
        type_ = (type_ or "").strip() or "Unknown"
        with self._provider.session() as session:
            row = session.execute(
                select(EntityModel).where(EntityModel.name == name, EntityModel.type == type_).limit(1)
            ).scalar_one_or_none()
            if row is not None:
                row.updated_at = _utcnow()
                session.commit()
                return row.id, False
            row = EntityModel(name=name, type=type_, created_at=_utcnow(), updated_at=_utcnow())
            session.add(row)
            session.commit()
            return row.id, True

    def add_fact(self, entity_id: int, fact: str, session_id: Optional[str]) -> bool:
        """Insert unless an identical fact already exists for the entity."""
        fact = (fact or "").strip()
        if not fact:
            return False
        with self._provider.session() as session:
            dup = session.execute(
                select(EntityFactModel.id).where(EntityFactModel.entity_id == entity_id, EntityFactModel.fact == fact)
            ).first()
            if dup is not None:
                return False
            session.add(
                EntityFactModel(entity_id=entity_id, fact=fact, source_session_id=session_id, created_at=_utcnow())
            )
            session.commit()
            return True

    def link_session(self, entity_id: int, session_id: str) -> bool:
        with self._provider.session() as session:
            dup = session.execute(
                select(EntitySessionModel.id).where(
                    EntitySessionModel.entity_id == entity_id, EntitySessionModel.session_id == session_id
                )
            ).first()
            if dup is not None:
                return False
            session.add(EntitySessionModel(entity_id=entity_id, session_id=session_id, created_at=_utcnow()))
            session.commit()
            return True

    def update_entity_summary(self, entity_id: int, summary: str) -> None:
        with self._provider.session() as session:
            row = session.get(EntityModel, entity_id)
            if row is None:
                return
            row.summary = summary
            row.updated_at = _utcnow()
            session.commit()

    def get_entity(self, entity_id: int, *, app_name: Optional[str] = None) -> Optional[Dict[str, Any]]:
        with self._provider.session() as session:
            row = session.get(EntityModel, entity_id)
            if row is None:
                return None
            stmt = select(EntityFactModel).where(EntityFactModel.entity_id == entity_id)
            if app_name:
                stmt = stmt.join(
                    ConversationModel, ConversationModel.id == EntityFactModel.source_session_id
                ).where(ConversationModel.app_name.ilike(f"%{app_name}%"))
            facts = session.execute(stmt.order_by(desc(EntityFactModel.id))).scalars().all()
            sessions = session.execute(
                select(EntitySessionModel.session_id)
                .where(EntitySessionModel.entity_id == entity_id)
                .order_by(EntitySessionModel.id)
            ).scalars().all()
            d = self._entity_to_dict(row)
            d["facts"] = [self._fact_to_dict(f) for f in facts]
            d["sessions"] = list(sessions)
            return d

    def list_entities(self, *, app_name: Optional[str] = None, limit: int = 200) -> List[Dict[str, Any]]:
        fact_count = (
            select(func.count(EntityFactModel.id))
            .where(EntityFactModel.entity_id == EntityModel.id)
            .correlate(EntityModel)
            .scalar_subquery()
        )
        stmt = select(EntityModel, fact_count)
        if app_name:
            stmt = stmt.where(
                exists()
                .where(EntitySessionModel.entity_id == EntityModel.id)
                .where(ConversationModel.id == EntitySessionModel.session_id)
                .where(ConversationModel.app_name.ilike(f"%{app_name}%"))
            )
        stmt = stmt.order_by(desc(EntityModel.updated_at)).limit(int(limit))
        with self._provider.session() as session:
            out = []
            for row, count in session.execute(stmt).all():
                d = self._entity_to_dict(row)
                d["fact_count"] = int(count or 0)
                out.append(d)
            return out

    def session_entity_ids(self, session_id: str) -> List[int]:
        with self._provider.session() as session:
            rows = session.execute(
                select(EntitySessionModel.entity_id)
                .where(EntitySessionModel.session_id == session_id)
                .order_by(EntitySessionModel.entity_id)
            ).scalars()
            return list(rows)

    # ---- edges ----

    def rebuild_session_edges(self, session_id: str) -> int:
        """
        Upsert a co-occurrence edge for every entity pair mentioned in `session_id`.

        evidence_count is recomputed from all shared sessions, so repeating the
        call for the same session does not inflate it.
        """
        entity_ids = self.session_entity_ids(session_id)
        if len(entity_ids) < 2:
            return 0
        with self._provider.session() as session:
            sessions_by_entity = self._sessions_by_entity(session, entity_ids)
            touched = 0
            for a, b in combinations(sorted(set(entity_ids)), 2):
                shared = sessions_by_entity[a] & sessions_by_entity[b]
                self._upsert_edge(session, a, b, len(shared), session_id)
                touched += 1
            session.commit()
            return touched

    def rebuild_all_edges(self) -> int:
        """Drop and recompute every co-occurrence edge from entity_sessions. Deterministic."""
        with self._provider.session() as session:
            links = session.execute(
                select(EntitySessionModel.entity_id, EntitySessionModel.session_id, EntitySessionModel.id).order_by(
                    EntitySessionModel.id
                )
            ).all()

            by_session: Dict[str, Set[int]] = defaultdict(set)
            last_link: Dict[str, int] = {}
            for entity_id, sid, link_id in links:
                by_session[sid].add(entity_id)
                last_link[sid] = link_id

            evidence: Dict[Tuple[int, int], Set[str]] = defaultdict(set)
            for sid, ids in by_session.items():
                for a, b in combinations(sorted(ids), 2):
                    evidence[(a, b)].add(sid)

            session.execute(delete(EntityEdgeModel).where(EntityEdgeModel.type == COOCCURRENCE))
            for (a, b) in sorted(evidence):
                sids = evidence[(a, b)]
                last = max(sids, key=lambda s: (last_link[s], s))
                session.add(
                    EntityEdgeModel(
                        source_entity_id=a,
                        target_entity_id=b,
                        type=COOCCURRENCE,
                        evidence_count=len(sids),
                        weight=edge_weight(len(sids)),
                        last_session_id=last,
                        updated_at=_utcnow(),
                    )
                )
            session.commit()
            return len(evidence)

    def list_edges(
        self,
        *,
        min_weight: float = 0.0,
        entity_ids: Optional[Iterable[int]] = None,
        limit: Optional[int] = None,
        by_weight: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        `entity_ids` keeps only edges with both endpoints in the set. With
        `by_weight` the heaviest edges come first, which is what `limit` cuts.
        """
        stmt = select(EntityEdgeModel).where(EntityEdgeModel.weight >= min_weight)
        if entity_ids is not None:
            ids = list(entity_ids)
            stmt = stmt.where(
                EntityEdgeModel.source_entity_id.in_(ids), EntityEdgeModel.target_entity_id.in_(ids)
            )
        if by_weight:
            stmt = stmt.order_by(desc(EntityEdgeModel.weight), desc(EntityEdgeModel.evidence_count), EntityEdgeModel.id)
        else:
            stmt = stmt.order_by(
                EntityEdgeModel.source_entity_id, EntityEdgeModel.target_entity_id, EntityEdgeModel.type
            )
        if limit is not None:
            stmt = stmt.limit(int(limit))
        with self._provider.session() as session:
            return [self._edge_to_dict(e) for e in session.execute(stmt).scalars()]

    def neighbour_ids(self, entity_id: int) -> Set[int]:
        with self._provider.session() as session:
            rows = session.execute(
                select(EntityEdgeModel.source_entity_id, EntityEdgeModel.target_entity_id).where(
                    (EntityEdgeModel.source_entity_id == entity_id) | (EntityEdgeModel.target_entity_id == entity_id)
                )
            ).all()
        return {b if a == entity_id else a for a, b in rows}

    def graph(
        self,
        *,
        app_name: Optional[str] = None,
        focus_entity_id: Optional[int] = None,
        edge_limit: int = 200,
        node_limit: int = 500,
    ) -> Optional[Dict[str, Any]]:
        """
        Nodes and edges for display. Every returned edge joins two returned
        nodes. With a focus entity the graph is cut to it and its direct
        neighbours; None when the focus entity is unknown or filtered out.
        """
        nodes = self.list_entities(app_name=app_name, limit=node_limit)
        if focus_entity_id is not None:
            if not any(n["id"] == focus_entity_id for n in nodes):
                return None
            keep = self.neighbour_ids(focus_entity_id) | {focus_entity_id}
            nodes = [n for n in nodes if n["id"] in keep]
        edges = self.list_edges(entity_ids=[n["id"] for n in nodes], limit=edge_limit, by_weight=True)
        return {"nodes": nodes, "edges": edges, "focus_entity_id": focus_entity_id}

    def list_session_entities(self, session_id: str) -> List[Dict[str, Any]]:
        stmt = (
            select(EntityModel)
            .join(EntitySessionModel, EntitySessionModel.entity_id == EntityModel.id)
            .where(EntitySessionModel.session_id == session_id)
            .order_by(EntityModel.name)
        )
        with self._provider.session() as session:
            return [self._entity_to_dict(r) for r in session.execute(stmt).scalars()]

    def delete_entity(self, entity_id: int) -> bool:
        """Facts, session links and edges go with it through FK cascades."""
        with self._provider.session() as session:
            res = session.execute(delete(EntityModel).where(EntityModel.id == entity_id))
            session.commit()
            return bool(res.rowcount)

    def counts(self) -> Dict[str, int]:
        with self._provider.session() as session:
            return {
                "entities": int(session.execute(select(func.count(EntityModel.id))).scalar_one()),
                "facts": int(session.execute(select(func.count(EntityFactModel.id))).scalar_one()),
                "edges": int(session.execute(select(func.count(EntityEdgeModel.id))).scalar_one()),
            }

    def delete_all(self) -> None:
        """Bulk delete of the derived graph (clean reprocess). Not crash-atomic across callers."""
        with self._provider.session() as session:
            session.execute(delete(EntityEdgeModel))
            session.execute(delete(EntitySessionModel))
            session.execute(delete(EntityFactModel))
            session.execute(delete(EntityModel))
            session.commit()

    # ---- helpers ----

    @staticmethod
    def _sessions_by_entity(session: Session, entity_ids: Iterable[int]) -> Dict[int, Set[str]]:
        out: Dict[int, Set[str]] = defaultdict(set)
        rows = session.execute(
            select(EntitySessionModel.entity_id, EntitySessionModel.session_id).where(
                EntitySessionModel.entity_id.in_(list(entity_ids))
            )
        ).all()
        for entity_id, sid in rows:
            out[entity_id].add(sid)
        return out

    @staticmethod
    def _upsert_edge(session: Session, a: int, b: int, evidence_count: int, session_id: str) -> None:
        src, dst = canonical_pair(a, b)
        row = session.execute(
            select(EntityEdgeModel).where(
                EntityEdgeModel.source_entity_id == src,
                EntityEdgeModel.target_entity_id == dst,
                EntityEdgeModel.type == COOCCURRENCE,
            )
        ).scalar_one_or_none()
        if row is None:
            row = EntityEdgeModel(source_entity_id=src, target_entity_id=dst, type=COOCCURRENCE)
            session.add(row)
        # evidence never shrinks outside a full rebuild
        count = max(int(row.evidence_count or 0), evidence_count)
        row.evidence_count = count
        row.weight = edge_weight(count)
        row.last_session_id = session_id
        row.updated_at = _utcnow()

    @staticmethod
    def _entity_to_dict(r: EntityModel) -> Dict[str, Any]:
        return {
            "id": r.id,
            "name": r.name,
            "type": r.type,
            "summary": r.summary,
            "created_at": r.created_at.isoformat() if r.created_at else None,
            "updated_at": r.updated_at.isoformat() if r.updated_at else None,
        }

    @staticmethod
    def _fact_to_dict(f: EntityFactModel) -> Dict[str, Any]:
        return {
            "id": f.id,
            "entity_id": f.entity_id,
            "fact": f.fact,
            "source_session_id": f.source_session_id,
            "created_at": f.created_at.isoformat() if f.created_at else None,
        }

    @staticmethod
    def _edge_to_dict(e: EntityEdgeModel) -> Dict[str, Any]:
        return {
            "id": e.id,
            "source_entity_id": e.source_entity_id,
            "target_entity_id": e.target_entity_id,
            "type": e.type,
            "weight": e.weight,
            "evidence_count": e.evidence_count,
            "last_session_id": e.last_session_id,
        }
