"""
FastAPI application factory.

Creates and configures the FastAPI application instance and builds the
single user repository at startup.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI

from idp.core.config import Settings, get_settings
from idp.core.errors import AppError, app_error_handler
from idp.core.logging import configure_logging
from idp.db.repositories.user import UserRepository
from idp.db.session import build_engine, create_session_factory
from idp.services.user_service import UserService

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the engine and the user repository; dispose the pool on shutdown."""
    settings: Settings = app.state.settings
    engine = build_engine(settings)
    repository = UserRepository(create_session_factory(engine))
    app.state.user_repository = repository
    app.state.user_service = UserService(repository, settings)
    logger.info("Starting identity provider", env=settings.ENVIRONMENT, version=settings.VERSION)

    yield

    await engine.dispose()
    logger.info("Identity provider stopped")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Identity provider: user accounts and admin console backend.",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan)
    app.state.settings = settings
    app.add_exception_handler(AppError, app_error_handler)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring."""
        return {
            "status": "healthy",
            "service": "idp",
            "version": settings.VERSION
        }

    @app.get("/info")
    async def info():
        return {
            "project name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT
        }

    return app
