"""
Production FastAPI Application

HTTP surface of the generation orchestrator, with the render-result and
notification-result consumers running in the same process unless
START_CONSUMERS_WITH_APP is off (then run src/consumer_main.py separately).

Run:
    uv run granian src.main:app --interface asgi --host 0.0.0.0 --port 8100
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import anyio
from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from src.platform.app_factory import create_app
from src.platform.config.core_setting import settings
from src.platform.config.di import container
from src.platform.config.wire_modules import WIRE_MODULES
from src.platform.lifecycle import build_consumer_group, start_infrastructure, stop_infrastructure
from src.platform.logging.loguru_io import Logger


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage unified application lifespan: startup and shutdown."""
    Logger.base.info('🚀 [Unified Service] Starting up...')

    container.wire(modules=WIRE_MODULES)
    Logger.base.info('🔌 [Unified Service] Dependency injection wired')

    # Migrations, database pool and queue connection: any failure aborts startup
    await start_infrastructure(container)

    try:
        async with anyio.create_task_group() as tg:
            consumers = None
            if settings.START_CONSUMERS_WITH_APP:
                consumers = build_consumer_group(container)
                tg.start_soon(consumers.run)
                Logger.base.info('📥 [Unified Service] Result consumers started')

            Logger.base.info('✅ [Unified Service] Ready to serve requests')
            yield

            Logger.base.info('🛑 [Unified Service] Shutting down...')
            if consumers is not None and not await consumers.drain():
                Logger.base.error('⏱️ [Unified Service] Cancelling handlers still in flight')
            tg.cancel_scope.cancel()
    finally:
        await stop_infrastructure(container)
        container.unwire()
        Logger.base.info('👋 [Unified Service] Shutdown complete')


app = create_app(
    lifespan=lifespan,
    description='Event Ticketing Core - ticket generation jobs, render reconciliation and notifications',
)


@app.get('/')
async def root() -> RedirectResponse:
    """Root endpoint - redirect to docs."""
    return RedirectResponse(url='/docs')
