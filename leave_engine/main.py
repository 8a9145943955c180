"""Leave Engine — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leave_engine import __version__
from leave_engine.common.exceptions import register_exception_handlers
from leave_engine.config import Settings, get_settings
from leave_engine.database import (
    create_engine_from_settings,
    create_schema,
    create_session_factory,
)
from leave_engine.leave.lifecycle import LeaveLifecycle
from leave_engine.leave.policy import LeavePolicy
from leave_engine.leave.router import router as leave_router

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    When ``session_factory`` is given (tests, embedding) the app uses it and
    owns no engine; otherwise the engine is built from settings at startup and
    disposed at shutdown.
    """
    settings = settings or get_settings()
    configure_logging(settings)
    policy = LeavePolicy.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup and shutdown events."""
        engine = None
        factory = session_factory
        if factory is None:
            engine = create_engine_from_settings(settings)
            if settings.CREATE_SCHEMA_ON_STARTUP:
                await create_schema(engine)
            factory = create_session_factory(engine)
        app.state.lifecycle = LeaveLifecycle(factory, policy)
        logger.info("Leave engine started (%s)", settings.ENVIRONMENT)
        yield
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title="Leave Engine",
        description="Leave lifecycle and balance accounting",
        version=__version__,
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # An injected factory needs no startup work
    if session_factory is not None:
        app.state.lifecycle = LeaveLifecycle(session_factory, policy)

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": __version__,
            "environment": settings.ENVIRONMENT,
        }

    app.include_router(leave_router, prefix="/api/v1/leave", tags=["leave"])

    return app


app = create_app()
