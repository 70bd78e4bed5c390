from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import time

import anyio
import asyncpg

from src.platform.exception.exceptions import AdvisoryLockTimeoutError
from src.platform.logging.loguru_io import Logger


@asynccontextmanager
async def advisory_lock(
    conn: asyncpg.Connection,
    lock_id: int,
    *,
    timeout: float,
    poll_interval: float = 0.5,
) -> AsyncIterator[None]:
    """
    Session-level PostgreSQL advisory lock held for the duration of the block

    Polls pg_try_advisory_lock so that waiting is bounded by `timeout`; the lock
    is released on exit whatever happened inside the block.
    """
    deadline = time.monotonic() + timeout
    waited = False
    while not await conn.fetchval('SELECT pg_try_advisory_lock($1)', lock_id):
        if time.monotonic() >= deadline:
            raise AdvisoryLockTimeoutError(lock_id=lock_id, timeout=timeout)
        if not waited:
            Logger.base.info(f'⏳ [LOCK] Advisory lock {lock_id} held by another node, waiting...')
            waited = True
        await anyio.sleep(poll_interval)

    Logger.base.info(f'🔒 [LOCK] Advisory lock {lock_id} acquired')
    try:
        yield
    finally:
        with anyio.CancelScope(shield=True):
            try:
                await conn.fetchval('SELECT pg_advisory_unlock($1)', lock_id)
                Logger.base.info(f'🔓 [LOCK] Advisory lock {lock_id} released')
            except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
                # Closing the session releases the lock as well
                Logger.base.warning(f'⚠️ [LOCK] Failed to release advisory lock {lock_id}: {e}')
