from __future__ import annotations

from fastapi import HTTPException, Request

from chatvault.application.wiring import AppServices


def get_services(request: Request) -> AppServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="services not initialised")
    return services
