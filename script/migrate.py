#!/usr/bin/env python3
"""
Database Migration Script

Commands:
    up      Run the bootstrap: create database, apply pending migrations, seed, validate
    status  List the migrations recorded in schema_migrations

Usage:
    PYTHONPATH=$PWD uv run python script/migrate.py [up|status]
"""

import sys

import anyio

from src.platform.config.di import container
from src.platform.exception.exceptions import CustomBaseError


COMMANDS = ('up', 'status')


async def _up() -> None:
    report = await container.migration_runner().run()
    print(f'   ✅ Database ready: {report.summary()}')
    for name in report.applied:
        print(f'   📄 applied {name}')
    for warning in report.seed_warnings:
        print(f'   ⚠️  {warning}')
    for error in report.seed_errors:
        print(f'   ❌ {error}')


async def _status() -> None:
    applied = await container.migration_runner().status()
    if not applied:
        print('   (no migration applied)')
    for row in applied:
        print(
            f'   {row.migration_name}  {row.checksum[:12]}  {row.file_size}B  '
            f'{row.executed_at:%Y-%m-%d %H:%M:%S}  {row.execution_time_ms}ms'
        )


def main() -> None:
    command = sys.argv[1] if len(sys.argv) > 1 else 'up'
    if command not in COMMANDS:
        print(f'Usage: migrate.py [{"|".join(COMMANDS)}]')
        sys.exit(2)

    print(f'🗄️  Migration: {command}')
    try:
        anyio.run(_up if command == 'up' else _status)
    except CustomBaseError as e:
        print(f'   ❌ {e.code}: {e.message} {e.details or ""}')
        sys.exit(1)


if __name__ == '__main__':
    main()
