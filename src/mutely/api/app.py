"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mutely.api.sessions import router as sessions_router
from mutely.app_logging import configure_logging
from mutely.containers import AppContainer


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(logging.DEBUG if container.settings.debug else logging.INFO)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Mutely API starting (%s)", container.settings.environment)
        yield
        await app.state.container.close_resources()

    app = FastAPI(title="Mutely", lifespan=lifespan)
    app.state.container = container

    app.include_router(sessions_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
