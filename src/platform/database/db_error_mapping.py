from collections.abc import Iterator
from contextlib import contextmanager

import asyncpg

from src.platform.exception.exceptions import (
    ConflictError,
    DeadlineExceededError,
    DependencyUnavailableError,
    InternalError,
)


@contextmanager
def translate_db_errors(operation: str) -> Iterator[None]:
    """Map asyncpg driver failures onto the service error taxonomy"""
    try:
        yield
    except asyncpg.UniqueViolationError as e:
        raise ConflictError(
            f'Violation de contrainte unique ({operation})',
            details={'constraint': e.constraint_name, 'detail': e.detail},
        ) from e
    except asyncpg.CheckViolationError as e:
        # Entities reject these states first
        raise InternalError(
            f'Violation de contrainte CHECK ({operation})',
            details={'constraint': e.constraint_name},
        ) from e
    except TimeoutError as e:
        raise DeadlineExceededError(f'Requête trop longue ({operation})') from e
    except (
        asyncpg.PostgresConnectionError,
        asyncpg.InterfaceError,
        asyncpg.CannotConnectNowError,
        OSError,
    ) as e:
        raise DependencyUnavailableError(f'Base de données indisponible ({operation})') from e
