"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .. import __version__
from ..service import Services
from .routes import router


def create_app(services: Services) -> FastAPI:
    """Build the app; ``services`` start and stop with the app's lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await services.startup()
        try:
            yield
        finally:
            await services.shutdown()

    app = FastAPI(
        title="cypherflow",
        version=__version__,
        description="Validate, generate and audit Cypher queries as durable workflows",
        lifespan=lifespan,
    )
    app.state.services = services
    app.include_router(router)
    return app
