"""FastAPI application factory."""

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI

from skillswap import __version__
from skillswap.core.clock import Clock, SystemClock
from skillswap.core.logging import configure_logging, get_logger
from skillswap.core.notifier import NotificationDispatcher, Notifier, build_notifier
from skillswap.utils.datetime import now_utc

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for startup and shutdown events."""
    start_time = now_utc()
    logger.info("app.startup", message="SkillSwap booking starting up", timestamp=start_time.isoformat())

    from skillswap.api.health import set_app_start_time

    set_app_start_time(start_time)

    if os.getenv("CREATE_TABLES_ON_STARTUP", "false").lower() in {"1", "true", "yes"}:
        from skillswap.core.db import create_tables

        await create_tables()

    yield

    await app.state.dispatcher.drain()
    logger.info("app.shutdown", message="SkillSwap booking shutting down gracefully")


def _setup_middleware(app: FastAPI) -> None:
    """Configure all middleware in correct order."""
    # Last added = first executed, so RequestIDMiddleware runs first
    from skillswap.middleware.logging import RequestIDMiddleware
    from skillswap.middleware.sentry import SentryContextMiddleware

    app.add_middleware(SentryContextMiddleware)
    app.add_middleware(RequestIDMiddleware)


def _register_routers(app: FastAPI) -> None:
    from skillswap.api.health import router as health_router
    from skillswap.api.sessions import router as sessions_router

    app.include_router(health_router)
    app.include_router(sessions_router)


def create_app(notifier: Notifier | None = None, clock: Clock | None = None) -> FastAPI:
    """Application factory.

    Args:
        notifier: Transition event gateway (defaults from NOTIFIER_WEBHOOK_URL)
        clock: Time source for booking rules (defaults to wall clock)
    """
    app = FastAPI(
        title="SkillSwap Booking API",
        description="Skill exchange session booking and scheduling",
        version=__version__,
        lifespan=lifespan,
    )

    from skillswap.core.exception_handlers import register_exception_handlers
    from skillswap.core.sentry import init_sentry

    init_sentry()
    register_exception_handlers(app)

    app.state.dispatcher = NotificationDispatcher(notifier or build_notifier())
    app.state.clock = clock or SystemClock()

    _setup_middleware(app)
    _register_routers(app)

    logger.info(
        "app.configured",
        environment=os.getenv("ENVIRONMENT", "development"),
        notifier=type(app.state.dispatcher.notifier).__name__,
    )

    return app


def run() -> None:
    """Development server entrypoint."""
    uvicorn.run(
        "skillswap.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("ENVIRONMENT", "development") == "development",
    )
