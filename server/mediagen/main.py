"""FastAPI application entrypoint for the generation gateway."""
from __future__ import annotations

import logging

from fastapi import FastAPI

from .config import settings
from .routers import generations

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""

    application = FastAPI(
        title="mediagen",
        description=(
            "Thin gateway over a remote media-generation service supporting "
            "immediate and deferred (polled) completion."
        ),
        version="0.1.0",
    )
    application.include_router(generations.router)

    @application.get("/healthz", tags=["system"])
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    logger.info("Generation gateway targeting %s", settings.stability_host)
    return application


app = create_app()
