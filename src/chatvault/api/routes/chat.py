from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from chatvault.api.deps import get_services
from chatvault.application.wiring import AppServices

router = APIRouter()


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    query: str = Field(..., min_length=1)
    app_name: Optional[str] = None
    history: List[ChatTurn] = []


@router.post("/chat")
async def chat_with_memory(body: ChatRequest, services: AppServices = Depends(get_services)):
    result = await services.retriever.answer(
        body.query,
        app_name=body.app_name,
        history=[t.model_dump() for t in body.history],
    )
    return result.to_dict()
