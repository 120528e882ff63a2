from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from chatvault.api.deps import get_services
from chatvault.application.wiring import AppServices

router = APIRouter()


class NoteRequest(BaseModel):
    content: str = Field(..., min_length=1)
    name: Optional[str] = None
    source_app: str = "note"
    session_id: Optional[str] = None


@router.get("/memories")
def list_memories(app: Optional[str] = None, limit: int = 50, services: AppServices = Depends(get_services)):
    return {"items": services.memories.list_memories(app_name=app, limit=limit)}


@router.post("/memories")
async def add_note(body: NoteRequest, services: AppServices = Depends(get_services)):
    try:
        row = await services.memory_filter.add_note(
            body.content,
            source_app=body.source_app,
            session_id=body.session_id,
            name=body.name,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"memory": row}


@router.get("/memories/search")
def search_memories(
    q: str = Query(..., min_length=1, description="Free-text query"),
    app: Optional[str] = None,
    services: AppServices = Depends(get_services),
):
    rows, vector_used = services.retriever.search_memories(q, app_name=app)
    return {"query": q, "items": rows, "vector_search_used": vector_used}


@router.delete("/memories/{memory_id}")
def delete_memory(memory_id: int, services: AppServices = Depends(get_services)):
    if not services.memories.delete_memory(memory_id):
        raise HTTPException(status_code=404, detail=f"memory not found: {memory_id}")
    return {"deleted": memory_id}
