from datetime import datetime
import hashlib
from pathlib import Path
import re
from typing import Optional, Self

import attrs

from src.platform.exception.exceptions import MigrationFileMissingError


MIGRATION_FILE_PATTERN = re.compile(r'^\d{3,}_[\w\-]+\.sql$')
SEED_ORDER = ('roles', 'permissions', 'menus', 'admin')


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@attrs.frozen
class MigrationFile:
    name: str
    sql: str
    checksum: str
    file_size: int

    @classmethod
    def load(cls, path: Path) -> Self:
        data = path.read_bytes()
        return cls(
            name=path.name,
            sql=data.decode('utf-8'),
            checksum=sha256_hex(data),
            file_size=len(data),
        )


@attrs.frozen
class AppliedMigration:
    migration_name: str
    checksum: str
    file_size: Optional[int] = None
    executed_at: Optional[datetime] = None
    execution_time_ms: Optional[int] = None


def list_migration_files(migrations_dir: Path) -> list[Path]:
    """NNN_description.sql files, byte-wise ascending by file name"""
    if not migrations_dir.is_dir():
        raise MigrationFileMissingError(f'Répertoire de migrations introuvable: {migrations_dir}')

    files = [
        path
        for path in migrations_dir.iterdir()
        if path.is_file() and MIGRATION_FILE_PATTERN.match(path.name)
    ]
    return sorted(files, key=lambda path: path.name.encode())


def seed_files(seeds_dir: Path) -> list[tuple[str, Path]]:
    """Seed files in their fixed order; missing files are skipped by the runner"""
    return [(name, seeds_dir / f'{name}.seed.sql') for name in SEED_ORDER]
