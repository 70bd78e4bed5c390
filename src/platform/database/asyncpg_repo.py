from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Optional

import asyncpg
from uuid_utils import UUID

from src.platform.config.core_setting import settings
from src.platform.context.call_context import CallContext
from src.platform.database.db_error_mapping import translate_db_errors


class AsyncpgRepo:
    """Repository bound to a unit-of-work connection; every query honours the call deadline"""

    def __init__(self, *, conn: asyncpg.Connection, ctx: Optional[CallContext] = None) -> None:
        self.conn = conn
        self.ctx = ctx or CallContext.background()

    @contextmanager
    def _query(self, operation: str) -> Iterator[None]:
        with translate_db_errors(operation), self.ctx.scope(
            settings.DB_QUERY_TIMEOUT, operation=operation
        ):
            yield


def to_uuid(value: Any) -> UUID:
    """asyncpg returns its own UUID type; normalise to uuid_utils"""
    return value if isinstance(value, UUID) else UUID(str(value))


def rows_affected(status: str) -> int:
    # Command tag, e.g. 'UPDATE 3'
    try:
        return int(status.rsplit(' ', 1)[-1])
    except ValueError:
        return 0
