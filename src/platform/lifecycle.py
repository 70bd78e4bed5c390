"""
Process lifecycle shared by the API process and the standalone consumer process

Start order: migrations -> database pool -> queue connection -> consumers.
Stop order is the reverse.
"""

from src.platform.config.core_setting import settings
from src.platform.config.di import Container
from src.platform.database.asyncpg_setting import close_all_asyncpg_pools, get_asyncpg_pool
from src.platform.logging.loguru_io import Logger
from src.platform.message_queue.consumer_group import ConsumerGroup


async def start_infrastructure(container: Container) -> None:
    """Any failure here is fatal: the process must not serve or consume."""
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        report = await container.migration_runner().run()
        Logger.base.info(f'🗄️ [LIFECYCLE] Database ready ({report.summary()})')

    await get_asyncpg_pool()
    Logger.base.info('🏊 [LIFECYCLE] Asyncpg pool initialized')

    await container.queue_client().connect()
    Logger.base.info('📡 [LIFECYCLE] Queue client connected')


def build_consumer_group(container: Container) -> ConsumerGroup:
    return ConsumerGroup(
        [
            container.render_result_consumer().build_worker(),
            container.notification_result_consumer().build_worker(),
        ],
        grace_period=settings.SHUTDOWN_GRACE_PERIOD,
    )


async def stop_infrastructure(container: Container) -> None:
    for client in (
        container.notification_gateway_client(),
        container.scan_validation_client(),
        container.payment_client(),
    ):
        await client.aclose()

    await close_all_asyncpg_pools()
    Logger.base.info('🏊 [LIFECYCLE] Asyncpg pools closed')

    await container.redis_client().disconnect()
    Logger.base.info('📡 [LIFECYCLE] Redis disconnected')
