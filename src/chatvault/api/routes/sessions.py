from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel

from chatvault.api.deps import get_services
from chatvault.application.wiring import AppServices
from chatvault.core.errors import LLMError

router = APIRouter()


class StageOut(BaseModel):
    name: str
    status: str
    error: Optional[str] = None
    duration_ms: Optional[float] = None


class SummarizeResponse(BaseModel):
    session_id: str
    status: str
    summary: Optional[str] = None
    stages: List[StageOut] = []


def _require_session(services: AppServices, session_id: str) -> Dict[str, Any]:
    conversation = services.conversations.get_conversation(session_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail=f"session not found: {session_id}")
    return conversation


@router.get("/sessions")
def list_sessions(app: Optional[str] = None, limit: int = 200, services: AppServices = Depends(get_services)):
    return {"items": services.conversations.list_conversations(app_name=app, limit=limit)}


@router.get("/sessions/{session_id}/messages")
def list_messages(session_id: str, limit: Optional[int] = None, services: AppServices = Depends(get_services)):
    conversation = _require_session(services, session_id)
    return {
        "session": conversation,
        "messages": services.conversations.list_messages(session_id, limit=limit),
    }


@router.get("/sessions/{session_id}/memories")
def list_session_memories(session_id: str, services: AppServices = Depends(get_services)):
    _require_session(services, session_id)
    return {"session_id": session_id, "items": services.memories.list_session_memories(session_id)}


@router.get("/sessions/{session_id}/entities")
def list_session_entities(session_id: str, services: AppServices = Depends(get_services)):
    _require_session(services, session_id)
    return {"session_id": session_id, "items": services.graph.list_session_entities(session_id)}


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str, services: AppServices = Depends(get_services)) -> Dict[str, Any]:
    if not services.conversations.delete_conversation(session_id):
        raise HTTPException(status_code=404, detail=f"session not found: {session_id}")

    # the master memory still reflects the deleted summary until regenerated
    regenerated = False
    try:
        await services.consolidator.regenerate()
        regenerated = True
    except LLMError as e:
        logger.warning(f"[api] master memory regeneration after delete failed: {e}")
    return {"deleted": session_id, "master_memory_regenerated": regenerated}


@router.post("/sessions/{session_id}/summarize", response_model=SummarizeResponse)
async def summarize_session(session_id: str, services: AppServices = Depends(get_services)):
    conversation = _require_session(services, session_id)

    result = await services.capture.summarize(session_id, conversation.get("app_name") or "")
    summary_stage = result.stage("summarize_session")
    if summary_stage is not None and summary_stage.status == "error":
        raise HTTPException(status_code=502, detail=summary_stage.error or "summarization failed")

    return SummarizeResponse(
        session_id=session_id,
        status=result.status,
        summary=services.summaries.get_summary(session_id),
        stages=[
            StageOut(name=s.name, status=s.status, error=s.error, duration_ms=s.duration_ms)
            for s in result.stages
        ],
    )
