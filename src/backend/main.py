"""
SurveyHub Backend Application

Survey lifecycle, response submission and upvote-ranked answers.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from api.deps import DbSession
from api.errors import register_exception_handlers
from api.v1 import router as api_v1_router
from core.config import settings
from core.events import create_start_app_handler, create_stop_app_handler
from core.middleware import RequestIdMiddleware, SecurityHeadersMiddleware

logger = structlog.get_logger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    await create_start_app_handler(app)()
    yield
    await create_stop_app_handler(app)()


def create_application() -> FastAPI:
    """Build the app: middleware stack, /api/v1 routes and error handlers."""
    docs_enabled = settings.DEBUG
    application = FastAPI(
        title=settings.APP_NAME,
        description="Surveys with community-ranked responses",
        version=APP_VERSION,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )

    # Last added runs first: GZip wraps CORS wraps request id wraps headers
    application.add_middleware(SecurityHeadersMiddleware)
    application.add_middleware(RequestIdMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )
    application.add_middleware(GZipMiddleware, minimum_size=1000)

    application.include_router(api_v1_router, prefix="/api/v1")
    register_exception_handlers(application)

    @application.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        """Liveness check; does not touch the database."""
        return {"status": "healthy", "service": "surveyhub-api"}

    @application.get("/health/ready", tags=["Health"])
    async def readiness_check(db: DbSession) -> JSONResponse:
        """Readiness check: the app is ready once the database answers."""
        try:
            await db.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.warning("readiness_check_failed", error=str(exc))
            return JSONResponse(status_code=503, content={"status": "unavailable", "database": "down"})
        return JSONResponse(content={"status": "ready", "database": "up"})

    @application.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        return {
            "name": settings.APP_NAME,
            "version": APP_VERSION,
            "docs": "/docs" if docs_enabled else "disabled",
        }

    return application


app = create_application()
