"""
Shared FastAPI App Factory

Provides common app setup for production and test environments.
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

import asyncpg
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from src.platform.config.core_setting import settings
from src.platform.database.asyncpg_setting import check_database_liveness
from src.platform.exception.exception_handlers import register_exception_handlers
from src.platform.exception.exceptions import CustomBaseError
from src.platform.logging.loguru_io import Logger
from src.service.notification.driving_adapter.http_controller.notification_controller import (
    router as notification_router,
)
from src.service.ticket_generation.driving_adapter.http_controller.generation_job_controller import (
    router as generation_job_router,
)


_PROBE_ERRORS = (
    CustomBaseError,
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    TimeoutError,
)


def create_app(
    *,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager[Any]],
    title_suffix: str = '',
    description: str = 'Event Ticketing Core',
) -> FastAPI:
    """
    Create a configured FastAPI application.

    Args:
        lifespan: Async context manager for app lifespan (startup/shutdown)
        title_suffix: Optional suffix for app title (e.g., " (Test)")
        description: App description

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title=f'{settings.PROJECT_NAME}{title_suffix}',
        description=description,
        version=settings.VERSION,
        lifespan=lifespan,
    )

    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,  # type: ignore
            allow_origins=settings.BACKEND_CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=['*'],
            allow_headers=['*'],
        )

    register_exception_handlers(app)

    app.include_router(generation_job_router, tags=['ticket-generation'])
    app.include_router(notification_router, tags=['notification'])

    _register_common_endpoints(app)

    return app


def _register_common_endpoints(app: FastAPI) -> None:
    """Register health and metrics endpoints."""

    @app.get('/health')
    async def health_check() -> JSONResponse:
        """DB liveness probe for container orchestration."""
        try:
            alive = await check_database_liveness(timeout=settings.DB_QUERY_TIMEOUT)
        except _PROBE_ERRORS as e:
            Logger.base.warning(f'⚠️ [HEALTH] Database probe failed: {e}')
            alive = False

        return JSONResponse(
            status_code=200 if alive else 503,
            content={
                'status': 'healthy' if alive else 'unhealthy',
                'service': settings.PROJECT_NAME,
                'database': 'up' if alive else 'down',
            },
        )

    @app.get('/metrics')
    async def get_metrics() -> PlainTextResponse:
        """Prometheus metrics endpoint."""
        return PlainTextResponse(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
