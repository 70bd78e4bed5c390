from abc import ABC, abstractmethod
from typing import Iterable

from src.platform.database.migration.migration_file import AppliedMigration, MigrationFile


class IMigrationStore(ABC):
    """Database side of the bootstrap, bound to the connection holding the advisory lock"""

    @abstractmethod
    async def ensure_control_table(self) -> None:
        pass

    @abstractmethod
    async def fetch_applied(self) -> list[AppliedMigration]:
        pass

    @abstractmethod
    async def apply_migration(self, migration: MigrationFile) -> int:
        """
        Execute the file and record it in one transaction

        Returns:
            Execution time in milliseconds
        """
        pass

    @abstractmethod
    async def existing_tables(self, tables: Iterable[str]) -> set[str]:
        pass

    @abstractmethod
    async def count_roles(self, codes: Iterable[str]) -> int:
        pass

    @abstractmethod
    async def count_rows(self, table: str) -> int:
        pass

    @abstractmethod
    async def admin_exists(self) -> bool:
        pass

    @abstractmethod
    async def run_seed(self, name: str, sql: str) -> None:
        """Execute one seed file in its own transaction"""
        pass

    @abstractmethod
    async def grant_super_admin_permissions(self) -> int:
        """Grant every permission to super_admin; returns the number of rows inserted"""
        pass
