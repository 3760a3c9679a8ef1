"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from design_review.logging_setup import setup_logging

from .routes import ReviewServices, ensure_services, router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Build shared components before the first request
    ensure_services(app)

    yield

    # Only components the app built itself are closed here
    if getattr(app.state, "owns_services", False) and app.state.services is not None:
        logger.info("Shutting down review services")
        app.state.services.close()
        app.state.services = None
        app.state.owns_services = False


def create_app(services: Optional[ReviewServices] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        services: Pre-built components, owned by the caller (defaults are
            built at startup and closed at shutdown)
    """
    setup_logging()

    app = FastAPI(
        title="Design Review Copilot",
        description="Multi-disciplinary review of proposed design changes",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.services = services
    app.state.owns_services = False
    app.include_router(router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
