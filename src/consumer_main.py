"""
Standalone Result Consumer Entry Point

Runs the render-result reconciler and the notification-result consumer
without the HTTP surface. SIGINT / SIGTERM stop pulling and drain in-flight
handlers; the process exits with status 1 when the drain window is exceeded.

Usage:
    PYTHONPATH=$PWD uv run python src/consumer_main.py
"""

import signal
import sys

import anyio

from src.platform.config.di import container
from src.platform.lifecycle import build_consumer_group, start_infrastructure, stop_infrastructure
from src.platform.logging.loguru_io import Logger


async def run_consumers() -> bool:
    """Returns True when every in-flight handler finished inside the drain window"""
    await start_infrastructure(container)
    consumers = build_consumer_group(container)
    drained = True

    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(consumers.run)
            Logger.base.info('✅ [Standalone Consumers] Pulling result queues')

            with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
                async for signum in signals:
                    Logger.base.info(f'🛑 [Standalone Consumers] Received signal {signum}')
                    break

            drained = await consumers.drain()
            tg.cancel_scope.cancel()
    finally:
        await stop_infrastructure(container)

    return drained


def main() -> None:
    Logger.base.info('🚀 [Standalone Consumers] Starting...')
    drained = anyio.run(run_consumers)
    if not drained:
        Logger.base.error('❌ [Standalone Consumers] Drain window exceeded, exiting non-zero')
        sys.exit(1)
    Logger.base.info('👋 [Standalone Consumers] Shutdown complete')


if __name__ == '__main__':
    main()
