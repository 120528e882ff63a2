from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from chatvault.api.deps import get_services
from chatvault.application.wiring import AppServices
from chatvault.memory.schema import CaptureEvent

router = APIRouter()


class CaptureRequest(BaseModel):
    app_name: str = Field(..., description="Foreground application name, e.g. 'Claude' or 'Google Chrome'")
    title: Optional[str] = Field(None, description="Window title")
    raw_text: str = Field(..., description="Full accessibility-text snapshot of the chat window")


class CaptureResponse(BaseModel):
    session_id: Optional[str] = None
    app_name: str
    title: Optional[str] = None
    platform: str
    parsed: int
    inserted: int
    processed: bool = False


@router.post("/captures", response_model=CaptureResponse)
async def ingest_capture(
    body: CaptureRequest,
    wait: bool = Query(False, description="Wait for memory, summary and graph processing to finish."),
    services: AppServices = Depends(get_services),
):
    event = CaptureEvent(app_name=body.app_name, title=body.title, raw_text=body.raw_text)
    outcome = await services.capture.ingest_capture(event)
    processed = False
    if wait and outcome.job is not None:
        await outcome.job
        processed = True
    return CaptureResponse(**outcome.to_dict(), processed=processed)
