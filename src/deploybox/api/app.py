"""FastAPI app entrypoint."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from deploybox.api.deps import get_orchestrator, get_settings
from deploybox.api.routes.events import router as events_router
from deploybox.api.routes.projects import router as projects_router
from deploybox.api.routes.webhook import router as webhook_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    orchestrator = app.dependency_overrides.get(get_orchestrator, get_orchestrator)()
    logger.info("Stopping deployed projects")
    await orchestrator.shutdown()


def create_app() -> FastAPI:
    app = FastAPI(title="deploybox API", version="0.1.0", lifespan=lifespan)
    app.include_router(projects_router)
    app.include_router(webhook_router)
    app.include_router(events_router)

    @app.get("/api/v1/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("deploybox.api.app:app", host=settings.host, port=settings.port, reload=False)
