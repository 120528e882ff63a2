from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from chatvault.api.deps import get_services
from chatvault.application.wiring import AppServices

router = APIRouter()


@router.get("/entities")
def list_entities(app: Optional[str] = None, limit: int = 200, services: AppServices = Depends(get_services)):
    items = services.graph.list_entities(app_name=app, limit=limit)
    return {
        "items": items,
        "edges": services.graph.list_edges(entity_ids=[e["id"] for e in items]),
    }


@router.get("/entities/{entity_id}")
def get_entity(entity_id: int, app: Optional[str] = None, services: AppServices = Depends(get_services)):
    entity = services.graph.get_entity(entity_id, app_name=app)
    if entity is None:
        raise HTTPException(status_code=404, detail=f"entity not found: {entity_id}")
    return entity


@router.delete("/entities/{entity_id}")
def delete_entity(entity_id: int, services: AppServices = Depends(get_services)):
    if not services.graph.delete_entity(entity_id):
        raise HTTPException(status_code=404, detail=f"entity not found: {entity_id}")
    logger.info(f"[api] entity {entity_id} deleted")
    return {"deleted": entity_id}


@router.get("/graph")
def get_graph(
    app: Optional[str] = None,
    focus: Optional[int] = Query(None, description="Entity id to centre on"),
    edge_limit: int = Query(200, ge=1, le=5000),
    services: AppServices = Depends(get_services),
):
    graph = services.graph.graph(app_name=app, focus_entity_id=focus, edge_limit=edge_limit)
    if graph is None:
        raise HTTPException(status_code=404, detail=f"entity not found: {focus}")
    return graph


@router.post("/graph/rebuild")
def rebuild_graph(services: AppServices = Depends(get_services)):
    return {"edges": services.graph_builder.rebuild_all()}
