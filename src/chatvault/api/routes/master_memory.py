from __future__ import annotations

from fastapi import APIRouter, Depends

from chatvault.api.deps import get_services
from chatvault.application.wiring import AppServices

router = APIRouter()


@router.get("/master-memory")
def get_master_memory(services: AppServices = Depends(get_services)):
    return services.summaries.get_master()


@router.post("/master-memory/regenerate")
async def regenerate_master_memory(services: AppServices = Depends(get_services)):
    content = await services.consolidator.regenerate()
    return {"content": content, "sessions": len(services.summaries.list_summaries())}
