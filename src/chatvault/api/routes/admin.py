from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from chatvault.api.deps import get_services
from chatvault.application.wiring import AppServices

router = APIRouter()


class ReprocessRequest(BaseModel):
    clean: bool = False


@router.post("/reprocess")
async def reprocess(body: ReprocessRequest, services: AppServices = Depends(get_services)):
    report = await services.reprocess.run(clean=body.clean)
    return report.to_dict()


@router.post("/admin/rebuild-fts")
def rebuild_fts(services: AppServices = Depends(get_services)):
    return {"rebuilt": services.index.rebuild()}


@router.get("/stats")
def stats(services: AppServices = Depends(get_services)):
    return {
        "memories": services.memories.count(),
        "summaries": len(services.summaries.list_summaries()),
        **services.conversations.counts(),
        **services.graph.counts(),
    }
