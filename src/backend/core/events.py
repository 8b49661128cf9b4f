"""
Application lifecycle event handlers.

Manages startup and shutdown tasks for the database, the bootstrap admin
account and the background scheduler.
"""

from typing import Callable

import structlog
from fastapi import FastAPI

from core.config import settings
from db.session import async_session_maker, close_db, init_db

logger = structlog.get_logger(__name__)


async def bootstrap_admin() -> None:
    """Create the configured admin account if it does not exist yet."""
    if not (settings.BOOTSTRAP_ADMIN_USERNAME and settings.BOOTSTRAP_ADMIN_PASSWORD):
        return

    from services.identity_service import IdentityService

    async with async_session_maker() as db:
        await IdentityService(db).ensure_admin(
            settings.BOOTSTRAP_ADMIN_USERNAME,
            settings.BOOTSTRAP_ADMIN_PASSWORD,
        )


def create_start_app_handler(app: FastAPI) -> Callable:
    """Create startup event handler."""

    async def start_app() -> None:
        logger.info("app_starting", app_name=settings.APP_NAME, env=settings.APP_ENV)

        await init_db()
        await bootstrap_admin()

        if settings.ENABLE_LIFECYCLE_SCHEDULER:
            try:
                from services.background_scheduler import start_scheduler

                await start_scheduler()
            except Exception as e:
                logger.exception("scheduler_start_failed", error=str(e))
                logger.warning("survey_auto_transitions_disabled")

        logger.info("app_started")

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info("app_stopping")

        try:
            from services.background_scheduler import stop_scheduler

            await stop_scheduler()
        except Exception as e:
            logger.warning("scheduler_cleanup_failed", error=str(e))

        await close_db()

        logger.info("app_stopped")

    return stop_app
