import asyncio

import asyncpg
import orjson
from uuid_utils import UUID

from src.platform.config.core_setting import settings
from src.platform.exception.exceptions import DependencyUnavailableError
from src.platform.logging.loguru_io import Logger


# Global connection pools per event loop
asyncpg_pools: dict[int, asyncpg.Pool] = {}


async def init_connection(conn: asyncpg.Connection) -> None:
    """Initialize each connection with the uuid_utils UUID codec and a JSON codec for jsonb"""

    def _uuid_decoder(value: bytes) -> UUID:
        return UUID(bytes=value)

    def _uuid_encoder(value: UUID | str) -> bytes:
        return (value if isinstance(value, UUID) else UUID(str(value))).bytes

    await conn.set_type_codec(
        'uuid',
        encoder=_uuid_encoder,
        decoder=_uuid_decoder,
        schema='pg_catalog',
        format='binary',
    )

    await conn.set_type_codec(
        'jsonb',
        encoder=lambda value: orjson.dumps(value).decode(),
        decoder=orjson.loads,
        schema='pg_catalog',
    )


async def get_asyncpg_pool() -> asyncpg.Pool:
    current_loop = asyncio.get_running_loop()
    loop_id = id(current_loop)

    # Fast path: pool already exists for this loop
    if loop_id in asyncpg_pools:
        return asyncpg_pools[loop_id]

    try:
        pool = await asyncpg.create_pool(
            settings.DATABASE_URL,
            min_size=settings.ASYNCPG_POOL_MIN_SIZE,
            max_size=settings.ASYNCPG_POOL_MAX_SIZE,
            command_timeout=settings.ASYNCPG_POOL_COMMAND_TIMEOUT,
            max_inactive_connection_lifetime=settings.ASYNCPG_POOL_MAX_INACTIVE_LIFETIME,
            timeout=settings.ASYNCPG_POOL_TIMEOUT,
            init=init_connection,
        )
    except (OSError, asyncpg.CannotConnectNowError) as e:
        raise DependencyUnavailableError(f'Base de données injoignable: {e}') from e

    Logger.base.info(
        f'🏊 [Pool] Created asyncpg pool (min={settings.ASYNCPG_POOL_MIN_SIZE}, '
        f'max={settings.ASYNCPG_POOL_MAX_SIZE})'
    )
    asyncpg_pools[loop_id] = pool
    return pool


async def check_database_liveness(*, timeout: float) -> bool:
    """DB liveness probe used by /health"""
    pool = await get_asyncpg_pool()
    async with pool.acquire(timeout=timeout) as conn:
        return await conn.fetchval('SELECT 1', timeout=timeout) == 1


async def close_asyncpg_pool() -> None:
    """Close the pool bound to the current event loop"""
    loop_id = id(asyncio.get_running_loop())
    if pool := asyncpg_pools.pop(loop_id, None):
        await pool.close()


async def close_all_asyncpg_pools() -> None:
    """Close every pool; only call during application shutdown"""
    for loop_id, pool in list(asyncpg_pools.items()):
        try:
            await pool.close()
        except Exception as e:
            Logger.base.warning(f'⚠️ [Pool] Failed to close pool for loop {loop_id}: {e}')
    asyncpg_pools.clear()
