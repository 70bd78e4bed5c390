from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg

from src.platform.config.core_setting import settings
from src.platform.database.db_error_mapping import translate_db_errors
from src.platform.exception.exceptions import DependencyUnavailableError
from src.platform.logging.loguru_io import Logger


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


async def ensure_database_exists(
    *,
    admin_dsn: str = settings.ADMIN_DATABASE_URL,
    database: str = settings.POSTGRES_DB,
    timeout: float = settings.DB_QUERY_TIMEOUT,
) -> bool:
    """
    Create the target database through the admin database when it is missing

    Returns:
        True when the database was created by this call

    Authentication failures are fatal; anything else is logged and bootstrap
    continues (the database may already exist and the admin database be closed to us).
    """
    try:
        conn = await asyncpg.connect(admin_dsn, timeout=timeout)
    except (
        asyncpg.InvalidPasswordError,
        asyncpg.InvalidAuthorizationSpecificationError,
    ) as e:
        raise DependencyUnavailableError(
            f'Authentification PostgreSQL refusée: {e}', retry_after=None
        ) from e
    except (OSError, asyncpg.PostgresError) as e:
        Logger.base.warning(f'⚠️ [BOOTSTRAP] Admin database unreachable, skipping creation: {e}')
        return False

    try:
        exists = await conn.fetchval(
            'SELECT 1 FROM pg_database WHERE datname = $1', database, timeout=timeout
        )
        if exists:
            Logger.base.info(f'✅ [BOOTSTRAP] Database {database} exists')
            return False

        # CREATE DATABASE cannot take a bind parameter
        await conn.execute(f'CREATE DATABASE {_quote_identifier(database)}')
        Logger.base.info(f'🆕 [BOOTSTRAP] Database {database} created')
        return True
    except asyncpg.DuplicateDatabaseError:
        # Another node created it in between
        return False
    except asyncpg.PostgresError as e:
        Logger.base.warning(f'⚠️ [BOOTSTRAP] Could not ensure database {database}: {e}')
        return False
    finally:
        await conn.close()


@asynccontextmanager
async def bootstrap_connection(
    *, dsn: str = settings.DATABASE_URL, timeout: float = settings.DB_QUERY_TIMEOUT
) -> AsyncIterator[asyncpg.Connection]:
    """Dedicated connection (outside the pool) that holds the advisory lock"""
    with translate_db_errors('bootstrap connect'):
        conn = await asyncpg.connect(dsn, timeout=timeout)
    try:
        yield conn
    finally:
        await conn.close()
