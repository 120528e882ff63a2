"""
ChatVault API - FastAPI backend for the capture agent, CLI and web clients
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from chatvault.application.wiring import AppServices, build_services
from chatvault.config.settings import load_settings
from chatvault.core.errors import ChatVaultError, LLMError, LLMTimeoutError, ModelUnavailableError
from chatvault.infrastructure.logging import configure_logging

from .routes import admin, captures, chat, entities, master_memory, memories, sessions

VERSION = "0.1.0"


def _error_body(exc: ChatVaultError) -> dict:
    return {"error": exc.code, "detail": exc.message}


def create_app(services: Optional[AppServices] = None) -> FastAPI:
    """
    Build the app. Pass `services` to reuse an already wired set (tests,
    embedded use); otherwise they are built from settings on startup.
    """
    app = FastAPI(
        title="ChatVault API",
        description="Chat capture, memory extraction, knowledge graph and retrieval",
        version=VERSION,
    )

    # CORS for CLI and web clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if services is not None:
        app.state.services = services

    @app.exception_handler(ModelUnavailableError)
    async def _model_unavailable(_request: Request, exc: ModelUnavailableError):
        return JSONResponse(status_code=503, content=_error_body(exc))

    @app.exception_handler(LLMTimeoutError)
    async def _llm_timeout(_request: Request, exc: LLMTimeoutError):
        return JSONResponse(status_code=504, content=_error_body(exc))

    @app.exception_handler(LLMError)
    async def _llm_error(_request: Request, exc: LLMError):
        return JSONResponse(status_code=502, content=_error_body(exc))

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint; reports model reachability."""
        svc: Optional[AppServices] = getattr(request.app.state, "services", None)
        if svc is None:
            return {"status": "starting", "version": VERSION}
        try:
            await svc.check_model()
            model = {"available": True}
        except ModelUnavailableError as e:
            model = {"available": False, "detail": e.message}
        return {
            "status": "healthy" if model["available"] else "degraded",
            "version": VERSION,
            "model": model,
            "pending_jobs": svc.capture.pending_jobs,
        }

    app.include_router(captures.router, prefix="/api", tags=["Captures"])
    app.include_router(sessions.router, prefix="/api", tags=["Sessions"])
    app.include_router(memories.router, prefix="/api", tags=["Memories"])
    app.include_router(entities.router, prefix="/api", tags=["Entities"])
    app.include_router(master_memory.router, prefix="/api", tags=["Master Memory"])
    app.include_router(chat.router, prefix="/api", tags=["Chat"])
    app.include_router(admin.router, prefix="/api", tags=["Admin"])

    @app.on_event("startup")
    async def _startup_services():
        if getattr(app.state, "services", None) is not None:
            return
        settings = load_settings()
        configure_logging(settings.logging.level)
        app.state.services = build_services(settings)
        app.state.owns_services = True
        logger.info(f"ChatVault API ready on {settings.database.url}")

    @app.on_event("shutdown")
    async def _shutdown_services():
        svc: Optional[AppServices] = getattr(app.state, "services", None)
        if svc is None:
            return
        await svc.capture.drain()
        if getattr(app.state, "owns_services", False):
            svc.close()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
