"""
Database Bootstrap - single-leader schema installer run at process start

1. Ensure the database exists (admin database)
2. Acquire the advisory lock on a dedicated connection
3. Ensure schema_migrations
4. Verify every recorded checksum, then apply pending migrations in order,
   one transaction per file
5. Seed when the completion score is below 5/5
6. Validate critical tables
7. Grant every permission to super_admin
8. Release the lock (always)

Running it against an up-to-date database changes nothing.
"""

from contextlib import AbstractAsyncContextManager
from pathlib import Path
import time
from typing import Any, Awaitable, Callable

import asyncpg
import attrs

from src.platform.config.core_setting import settings
from src.platform.database.migration.advisory_lock import advisory_lock
from src.platform.database.migration.asyncpg_migration_store import AsyncpgMigrationStore
from src.platform.database.migration.bootstrap_connection import (
    bootstrap_connection,
    ensure_database_exists,
)
from src.platform.database.migration.i_migration_store import IMigrationStore
from src.platform.database.migration.migration_file import (
    AppliedMigration,
    MigrationFile,
    list_migration_files,
    seed_files,
)
from src.platform.exception.exceptions import (
    ConflictError,
    CustomBaseError,
    InternalError,
    MigrationChecksumMismatchError,
    MigrationFileMissingError,
)
from src.platform.logging.loguru_io import Logger


REQUIRED_TABLES = ('people', 'users', 'roles', 'permissions', 'menus', 'accesses', 'authorizations')
CRITICAL_TABLES = ('people', 'users', 'roles', 'permissions', 'menus')
EXPECTED_ROLES = ('super_admin', 'admin', 'user')
MIN_PERMISSIONS = 20
MIN_MENUS = 10
MAX_SEED_SCORE = 5


@attrs.define
class BootstrapReport:
    database_created: bool = False
    applied: list[str] = attrs.field(factory=list)
    skipped: list[str] = attrs.field(factory=list)
    seed_score: int = 0
    seeded: list[str] = attrs.field(factory=list)
    seed_warnings: list[str] = attrs.field(factory=list)
    seed_errors: list[str] = attrs.field(factory=list)
    super_admin_grants: int = 0
    duration_ms: int = 0

    def summary(self) -> str:
        return (
            f'applied={len(self.applied)} skipped={len(self.skipped)} '
            f'seed_score={self.seed_score}/{MAX_SEED_SCORE} seeded={self.seeded or "-"} '
            f'grants={self.super_admin_grants} in {self.duration_ms}ms'
        )


class MigrationRunner:
    def __init__(
        self,
        *,
        migrations_dir: Path = settings.MIGRATIONS_DIR,
        seeds_dir: Path = settings.SEEDS_DIR,
        lock_id: int = settings.ADVISORY_LOCK_ID,
        lock_timeout: float = settings.ADVISORY_LOCK_TIMEOUT,
        database_creator: Callable[[], Awaitable[bool]] = ensure_database_exists,
        connection_factory: Callable[[], AbstractAsyncContextManager[Any]] = bootstrap_connection,
        store_factory: Callable[[Any], IMigrationStore] = lambda conn: AsyncpgMigrationStore(
            conn=conn
        ),
        lock_factory: Callable[..., AbstractAsyncContextManager[None]] = advisory_lock,
    ) -> None:
        self.migrations_dir = migrations_dir
        self.seeds_dir = seeds_dir
        self.lock_id = lock_id
        self.lock_timeout = lock_timeout
        self.database_creator = database_creator
        self.connection_factory = connection_factory
        self.store_factory = store_factory
        self.lock_factory = lock_factory

    @Logger.io
    async def run(self) -> BootstrapReport:
        started = time.monotonic()
        report = BootstrapReport()
        Logger.base.info('🚀 [BOOTSTRAP] Starting database bootstrap')

        report.database_created = await self.database_creator()

        async with self.connection_factory() as conn:
            async with self.lock_factory(conn, self.lock_id, timeout=self.lock_timeout):
                store = self.store_factory(conn)
                await store.ensure_control_table()
                await self._apply_migrations(store, report)
                await self._seed_if_needed(store, report)
                await self._validate(store)
                report.super_admin_grants = await store.grant_super_admin_permissions()

        report.duration_ms = int((time.monotonic() - started) * 1000)
        Logger.base.info(f'✅ [BOOTSTRAP] Done: {report.summary()}')
        return report

    async def status(self) -> list[AppliedMigration]:
        """Applied migrations as recorded in schema_migrations"""
        async with self.connection_factory() as conn:
            store = self.store_factory(conn)
            await store.ensure_control_table()
            return await store.fetch_applied()

    # ========== Migrations ==========

    async def _apply_migrations(self, store: IMigrationStore, report: BootstrapReport) -> None:
        files = {path.name: path for path in list_migration_files(self.migrations_dir)}
        applied = {row.migration_name: row for row in await store.fetch_applied()}

        # Every recorded migration is checked before anything new runs
        for name, row in applied.items():
            path = files.get(name)
            if path is None:
                raise MigrationFileMissingError(
                    f'Fichier de migration appliquée introuvable: {name}', migration_name=name
                )
            current = MigrationFile.load(path)
            if current.checksum != row.checksum:
                Logger.base.error(f'💥 [BOOTSTRAP] Checksum drift on {name}')
                raise MigrationChecksumMismatchError(
                    migration_name=name, expected=row.checksum, actual=current.checksum
                )
            report.skipped.append(name)

        for name, path in files.items():
            if name in applied:
                continue
            migration = MigrationFile.load(path)
            Logger.base.info(f'📦 [BOOTSTRAP] Applying {name}')
            execution_ms = await store.apply_migration(migration)
            report.applied.append(name)
            Logger.base.info(f'✅ [BOOTSTRAP] Applied {name} in {execution_ms}ms')

    # ========== Seeds ==========

    async def completion_score(self, store: IMigrationStore) -> int:
        existing = await store.existing_tables(REQUIRED_TABLES)
        score = 0
        if len(existing) == len(REQUIRED_TABLES):
            score += 1
        # Checks on a missing table score 0 instead of failing the probe
        if 'roles' in existing and await store.count_roles(EXPECTED_ROLES) >= len(EXPECTED_ROLES):
            score += 1
        if 'permissions' in existing and await store.count_rows('permissions') >= MIN_PERMISSIONS:
            score += 1
        if 'menus' in existing and await store.count_rows('menus') >= MIN_MENUS:
            score += 1
        if {'users', 'people'} <= existing and await store.admin_exists():
            score += 1
        return score

    async def _seed_if_needed(self, store: IMigrationStore, report: BootstrapReport) -> None:
        report.seed_score = await self.completion_score(store)
        Logger.base.info(
            f'📈 [BOOTSTRAP] Database completion {report.seed_score}/{MAX_SEED_SCORE}'
        )
        if report.seed_score >= MAX_SEED_SCORE:
            return

        for name, path in seed_files(self.seeds_dir):
            if not path.is_file():
                Logger.base.warning(f'⚠️ [BOOTSTRAP] Seed file missing: {path.name}')
                report.seed_errors.append(name)
                continue
            try:
                await store.run_seed(name, path.read_text(encoding='utf-8'))
            except ConflictError:
                Logger.base.warning(f'⚠️ [BOOTSTRAP] Seed {name}: data already present')
                report.seed_warnings.append(name)
            except (CustomBaseError, asyncpg.PostgresError) as e:
                Logger.base.error(f'❌ [BOOTSTRAP] Seed {name} failed: {e}')
                report.seed_errors.append(name)
            else:
                Logger.base.info(f'🌱 [BOOTSTRAP] Seed {name} applied')
                report.seeded.append(name)

    # ========== Validation ==========

    async def _validate(self, store: IMigrationStore) -> None:
        existing = await store.existing_tables(CRITICAL_TABLES)
        missing = [table for table in CRITICAL_TABLES if table not in existing]
        if missing:
            raise InternalError(
                f'Tables critiques manquantes: {", ".join(missing)}',
                details={'missing_tables': missing},
            )
        if not await store.admin_exists():
            Logger.base.warning('⚠️ [BOOTSTRAP] Default admin user missing')
