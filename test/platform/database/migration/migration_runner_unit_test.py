from contextlib import asynccontextmanager
from pathlib import Path
from typing import Iterable, Optional
from unittest.mock import AsyncMock

import asyncpg
import pytest

from src.platform.database.migration.advisory_lock import advisory_lock
from src.platform.database.migration.i_migration_store import IMigrationStore
from src.platform.database.migration.migration_file import (
    AppliedMigration,
    MigrationFile,
    list_migration_files,
    sha256_hex,
)
from src.platform.database.migration.migration_runner import (
    MAX_SEED_SCORE,
    REQUIRED_TABLES,
    MigrationRunner,
)
from src.platform.exception.exceptions import (
    AdvisoryLockTimeoutError,
    ConflictError,
    InternalError,
    MigrationChecksumMismatchError,
    MigrationFileMissingError,
)


class FakeMigrationStore(IMigrationStore):
    """schema_migrations plus just enough of the access-control tables to score completion"""

    def __init__(self) -> None:
        self.applied: dict[str, AppliedMigration] = {}
        self.executed: list[str] = []
        self.tables: set[str] = set()
        self.roles = 0
        self.rows = {'permissions': 0, 'menus': 0}
        self.admin = False
        self.seeds_run: list[str] = []
        self.seed_failures: dict[str, Exception] = {}

    async def ensure_control_table(self) -> None:
        self.tables.add('schema_migrations')

    async def fetch_applied(self) -> list[AppliedMigration]:
        return [self.applied[name] for name in sorted(self.applied)]

    async def apply_migration(self, migration: MigrationFile) -> int:
        self.executed.append(migration.name)
        self.applied[migration.name] = AppliedMigration(
            migration_name=migration.name,
            checksum=migration.checksum,
            file_size=migration.file_size,
        )
        self.tables.update(REQUIRED_TABLES)
        return 1

    async def existing_tables(self, tables: Iterable[str]) -> set[str]:
        return self.tables & set(tables)

    async def count_roles(self, codes: Iterable[str]) -> int:
        return self.roles

    async def count_rows(self, table: str) -> int:
        return self.rows[table]

    async def admin_exists(self) -> bool:
        return self.admin

    async def run_seed(self, name: str, sql: str) -> None:
        if name in self.seed_failures:
            raise self.seed_failures[name]
        self.seeds_run.append(name)
        if name == 'roles':
            self.roles = 3
        elif name == 'permissions':
            self.rows['permissions'] = 25
        elif name == 'menus':
            self.rows['menus'] = 12
        elif name == 'admin':
            self.admin = True

    async def grant_super_admin_permissions(self) -> int:
        return self.rows['permissions']


class LockSpy:
    def __init__(self) -> None:
        self.acquired = 0
        self.released = 0

    @asynccontextmanager
    async def __call__(self, conn, lock_id: int, *, timeout: float):
        self.acquired += 1
        try:
            yield
        finally:
            self.released += 1


@asynccontextmanager
async def _connection():
    yield object()


def _write(directory: Path, name: str, sql: str) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / name).write_text(sql, encoding='utf-8')


@pytest.fixture
def migrations_dir(tmp_path: Path) -> Path:
    directory = tmp_path / 'migrations'
    _write(directory, '001_access_control.sql', 'CREATE TABLE roles (id SERIAL);')
    _write(directory, '010_generation_jobs.sql', 'CREATE TABLE generation_jobs (id UUID);')
    _write(directory, '002_tickets.sql', 'CREATE TABLE tickets (id SERIAL);')
    _write(directory, 'README.md', '# not a migration')
    _write(directory, '1_too_short.sql', 'SELECT 1;')
    return directory


@pytest.fixture
def seeds_dir(tmp_path: Path) -> Path:
    directory = tmp_path / 'seeds'
    for name in ('roles', 'permissions', 'menus', 'admin'):
        _write(directory, f'{name}.seed.sql', f'-- {name}')
    return directory


@pytest.fixture
def migration_store() -> FakeMigrationStore:
    return FakeMigrationStore()


@pytest.fixture
def lock() -> LockSpy:
    return LockSpy()


@pytest.fixture
def runner(migrations_dir, seeds_dir, migration_store, lock) -> MigrationRunner:
    return MigrationRunner(
        migrations_dir=migrations_dir,
        seeds_dir=seeds_dir,
        database_creator=AsyncMock(return_value=False),
        connection_factory=_connection,
        store_factory=lambda conn: migration_store,
        lock_factory=lock,
    )


# ============================================================================
# Migration files
# ============================================================================


@pytest.mark.unit
class TestMigrationFiles:
    def test_only_numbered_sql_files_in_byte_order(self, migrations_dir):
        names = [path.name for path in list_migration_files(migrations_dir)]

        assert names == ['001_access_control.sql', '002_tickets.sql', '010_generation_jobs.sql']

    def test_checksum_is_sha256_of_raw_bytes(self, migrations_dir):
        migration = MigrationFile.load(migrations_dir / '002_tickets.sql')

        assert migration.checksum == sha256_hex(b'CREATE TABLE tickets (id SERIAL);')
        assert migration.file_size == len(b'CREATE TABLE tickets (id SERIAL);')

    def test_missing_directory_is_an_error(self, tmp_path):
        with pytest.raises(MigrationFileMissingError):
            list_migration_files(tmp_path / 'nope')


# ============================================================================
# Bootstrap
# ============================================================================


@pytest.mark.unit
class TestMigrationRunner:
    async def test_fresh_database_applies_everything_then_seeds(
        self, runner, migration_store, lock
    ):
        # When
        report = await runner.run()

        # Then: Migrations in order, seeds in their fixed order, lock held and released once
        assert migration_store.executed == [
            '001_access_control.sql',
            '002_tickets.sql',
            '010_generation_jobs.sql',
        ]
        assert report.applied == migration_store.executed
        assert report.skipped == []
        assert report.seed_score == 1  # tables exist, nothing seeded yet
        assert migration_store.seeds_run == ['roles', 'permissions', 'menus', 'admin']
        assert report.super_admin_grants == 25
        assert (lock.acquired, lock.released) == (1, 1)

    async def test_second_run_changes_nothing(self, runner, migration_store):
        await runner.run()
        migration_store.executed.clear()
        migration_store.seeds_run.clear()

        report = await runner.run()

        assert migration_store.executed == []
        assert len(report.skipped) == 3
        assert report.seed_score == MAX_SEED_SCORE
        assert migration_store.seeds_run == []

    async def test_new_file_is_applied_on_next_run(self, runner, migration_store, migrations_dir):
        await runner.run()
        _write(migrations_dir, '011_notifications.sql', 'CREATE TABLE notifications (id SERIAL);')

        report = await runner.run()

        assert report.applied == ['011_notifications.sql']

    async def test_checksum_drift_aborts_before_applying_anything(
        self, runner, migration_store, migrations_dir, lock
    ):
        # Given: 001 was recorded with other content and 002 is pending
        migration_store.applied['001_access_control.sql'] = AppliedMigration(
            migration_name='001_access_control.sql', checksum=sha256_hex(b'old content')
        )

        # When / Then
        with pytest.raises(MigrationChecksumMismatchError):
            await runner.run()
        assert migration_store.executed == []
        assert lock.released == 1

    async def test_recorded_migration_without_file_aborts(self, runner, migration_store):
        migration_store.applied['000_gone.sql'] = AppliedMigration(
            migration_name='000_gone.sql', checksum='x'
        )

        with pytest.raises(MigrationFileMissingError):
            await runner.run()
        assert migration_store.executed == []

    async def test_seed_conflict_and_missing_seed_do_not_abort(
        self, runner, migration_store, seeds_dir
    ):
        # Given: roles already present, menus seed file removed
        migration_store.seed_failures['roles'] = ConflictError('duplicate key')
        (seeds_dir / 'menus.seed.sql').unlink()

        # When
        report = await runner.run()

        # Then
        assert report.seed_warnings == ['roles']
        assert report.seed_errors == ['menus']
        assert report.seeded == ['permissions', 'admin']

    async def test_failing_seed_is_reported(self, runner, migration_store):
        migration_store.seed_failures['permissions'] = asyncpg.PostgresError('syntax error')

        report = await runner.run()

        assert report.seed_errors == ['permissions']
        assert 'admin' in report.seeded

    async def test_missing_critical_table_fails_validation(self, runner, migration_store, lock):
        migration_store.apply_migration = AsyncMock(return_value=1)

        with pytest.raises(InternalError) as exc_info:
            await runner.run()
        assert 'people' in exc_info.value.details['missing_tables']
        assert lock.released == 1

    async def test_completion_score_counts_each_check(self, runner, migration_store):
        migration_store.tables.update(REQUIRED_TABLES)
        migration_store.roles = 3
        migration_store.rows['permissions'] = 19

        assert await runner.completion_score(migration_store) == 2

    async def test_status_lists_recorded_migrations(self, runner, migration_store):
        await runner.run()

        applied = await runner.status()

        assert [row.migration_name for row in applied] == migration_store.executed


# ============================================================================
# Advisory lock
# ============================================================================


@pytest.mark.unit
class TestAdvisoryLock:
    async def test_waits_until_lock_is_free_then_releases(self):
        conn = AsyncMock()
        conn.fetchval.side_effect = [False, True, True]

        async with advisory_lock(conn, 12345, timeout=1, poll_interval=0.01):
            pass

        calls = [call.args for call in conn.fetchval.await_args_list]
        assert calls == [
            ('SELECT pg_try_advisory_lock($1)', 12345),
            ('SELECT pg_try_advisory_lock($1)', 12345),
            ('SELECT pg_advisory_unlock($1)', 12345),
        ]

    async def test_times_out_when_never_free(self):
        conn = AsyncMock()
        conn.fetchval.return_value = False

        with pytest.raises(AdvisoryLockTimeoutError):
            async with advisory_lock(conn, 12345, timeout=0.03, poll_interval=0.01):
                pass

    async def test_released_when_block_raises(self):
        conn = AsyncMock()
        conn.fetchval.return_value = True

        with pytest.raises(RuntimeError):
            async with advisory_lock(conn, 7, timeout=1):
                raise RuntimeError('migration failed')

        assert conn.fetchval.await_args_list[-1].args == ('SELECT pg_advisory_unlock($1)', 7)

    async def test_release_failure_is_not_raised(self):
        conn = AsyncMock()
        conn.fetchval.side_effect = [True, asyncpg.InterfaceError('connection closed')]
        entered: Optional[bool] = None

        async with advisory_lock(conn, 7, timeout=1):
            entered = True

        assert entered is True
