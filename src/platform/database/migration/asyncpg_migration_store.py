import time
from typing import Iterable

import asyncpg

from src.platform.config.core_setting import settings
from src.platform.database.asyncpg_repo import rows_affected
from src.platform.database.db_error_mapping import translate_db_errors
from src.platform.database.migration.i_migration_store import IMigrationStore
from src.platform.database.migration.migration_file import AppliedMigration, MigrationFile
from src.platform.logging.loguru_io import Logger


CREATE_CONTROL_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        migration_name VARCHAR(255) PRIMARY KEY,
        checksum VARCHAR(64) NOT NULL,
        file_size INTEGER NOT NULL,
        executed_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        execution_time_ms INTEGER NOT NULL
    )
"""

# Only these names are ever interpolated into count queries
COUNTABLE_TABLES = frozenset({'roles', 'permissions', 'menus', 'users', 'people'})


class AsyncpgMigrationStore(IMigrationStore):
    def __init__(self, *, conn: asyncpg.Connection, query_timeout: float = settings.DB_QUERY_TIMEOUT):
        self.conn = conn
        self.query_timeout = query_timeout

    async def ensure_control_table(self) -> None:
        with translate_db_errors('create schema_migrations'):
            await self.conn.execute(CREATE_CONTROL_TABLE_SQL, timeout=self.query_timeout)

    async def fetch_applied(self) -> list[AppliedMigration]:
        with translate_db_errors('read schema_migrations'):
            rows = await self.conn.fetch(
                """
                SELECT migration_name, checksum, file_size, executed_at, execution_time_ms
                FROM schema_migrations
                ORDER BY migration_name
                """,
                timeout=self.query_timeout,
            )
        return [
            AppliedMigration(
                migration_name=row['migration_name'],
                checksum=row['checksum'],
                file_size=row['file_size'],
                executed_at=row['executed_at'],
                execution_time_ms=row['execution_time_ms'],
            )
            for row in rows
        ]

    async def apply_migration(self, migration: MigrationFile) -> int:
        started = time.monotonic()
        async with self.conn.transaction():
            # Simple query protocol: the file may hold several statements
            await self.conn.execute(migration.sql)
            execution_ms = int((time.monotonic() - started) * 1000)
            await self.conn.execute(
                """
                INSERT INTO schema_migrations
                    (migration_name, checksum, file_size, execution_time_ms)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (migration_name) DO NOTHING
                """,
                migration.name,
                migration.checksum,
                migration.file_size,
                execution_ms,
                timeout=self.query_timeout,
            )
        return execution_ms

    async def existing_tables(self, tables: Iterable[str]) -> set[str]:
        rows = await self.conn.fetch(
            """
            SELECT table_name FROM information_schema.tables
            WHERE table_schema = current_schema() AND table_name = ANY($1::text[])
            """,
            list(tables),
            timeout=self.query_timeout,
        )
        return {row['table_name'] for row in rows}

    async def count_roles(self, codes: Iterable[str]) -> int:
        return await self.conn.fetchval(
            'SELECT COUNT(*) FROM roles WHERE code = ANY($1::text[])',
            list(codes),
            timeout=self.query_timeout,
        )

    async def count_rows(self, table: str) -> int:
        if table not in COUNTABLE_TABLES:
            raise ValueError(f'unexpected table: {table}')
        return await self.conn.fetchval(f'SELECT COUNT(*) FROM {table}', timeout=self.query_timeout)

    async def admin_exists(self) -> bool:
        return await self.conn.fetchval(
            """
            SELECT EXISTS (
                SELECT 1 FROM users u
                JOIN people p ON u.person_id = p.id
                WHERE u.username = 'admin'
            )
            """,
            timeout=self.query_timeout,
        )

    async def run_seed(self, name: str, sql: str) -> None:
        with translate_db_errors(f'seed {name}'):
            async with self.conn.transaction():
                await self.conn.execute(sql)

    async def grant_super_admin_permissions(self) -> int:
        with translate_db_errors('grant super_admin permissions'):
            async with self.conn.transaction():
                role_id = await self.conn.fetchval(
                    "SELECT id FROM roles WHERE code = 'super_admin'", timeout=self.query_timeout
                )
                if role_id is None:
                    Logger.base.warning('⚠️ [BOOTSTRAP] Role super_admin not found, grants skipped')
                    return 0

                status = await self.conn.execute(
                    """
                    INSERT INTO authorizations (role_id, permission_id, menu_id)
                    SELECT $1, p.id, NULL FROM permissions p
                    ON CONFLICT DO NOTHING
                    """,
                    role_id,
                    timeout=self.query_timeout,
                )
        return rows_affected(status)
