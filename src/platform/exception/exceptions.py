from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    VALIDATION_ERROR = 'VALIDATION_ERROR'
    NOT_FOUND = 'NOT_FOUND'
    CONFLICT = 'CONFLICT'
    PRECONDITION_FAILED = 'PRECONDITION_FAILED'
    DEPENDENCY_UNAVAILABLE = 'DEPENDENCY_UNAVAILABLE'
    DEADLINE_EXCEEDED = 'DEADLINE_EXCEEDED'
    INTERNAL_ERROR = 'INTERNAL_ERROR'


# Stable human-readable messages returned alongside each code
DEFAULT_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.VALIDATION_ERROR: 'Données de requête invalides',
    ErrorCode.NOT_FOUND: 'Ressource introuvable',
    ErrorCode.CONFLICT: 'Conflit avec une ressource existante',
    ErrorCode.PRECONDITION_FAILED: "L'état actuel ne permet pas cette opération",
    ErrorCode.DEPENDENCY_UNAVAILABLE: 'Service dépendant temporairement indisponible',
    ErrorCode.DEADLINE_EXCEEDED: "Délai d'exécution dépassé",
    ErrorCode.INTERNAL_ERROR: 'Erreur interne du serveur',
}


class CustomBaseError(Exception):
    """Base class for all custom exceptions - controls logging behavior in @Logger.io"""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str | None = None,
        status_code: int = 500,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or DEFAULT_MESSAGES[self.code]
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class DomainError(CustomBaseError):
    code = ErrorCode.VALIDATION_ERROR

    def __init__(
        self, message: str | None = None, status_code: int = 400, **kwargs: Any
    ) -> None:
        super().__init__(message, status_code, **kwargs)


class NotFoundError(CustomBaseError):
    code = ErrorCode.NOT_FOUND

    def __init__(self, message: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, 404, **kwargs)


class ConflictError(CustomBaseError):
    code = ErrorCode.CONFLICT

    def __init__(self, message: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, 409, **kwargs)


class PreconditionFailedError(CustomBaseError):
    code = ErrorCode.PRECONDITION_FAILED

    def __init__(self, message: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, 409, **kwargs)


class DependencyUnavailableError(CustomBaseError):
    code = ErrorCode.DEPENDENCY_UNAVAILABLE

    def __init__(
        self, message: str | None = None, *, retry_after: int | None = 5, **kwargs: Any
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message, 503, **kwargs)


class DeadlineExceededError(CustomBaseError):
    code = ErrorCode.DEADLINE_EXCEEDED

    def __init__(
        self, message: str | None = None, *, retry_after: int | None = 1, **kwargs: Any
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message, 503, **kwargs)


class InternalError(CustomBaseError):
    code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, 500, **kwargs)


# ========== Bootstrap (fatal at startup) ==========


class MigrationChecksumMismatchError(InternalError):
    def __init__(self, *, migration_name: str, expected: str, actual: str) -> None:
        self.migration_name = migration_name
        super().__init__(
            f'Somme de contrôle modifiée pour la migration {migration_name}',
            details={'migration': migration_name, 'expected': expected, 'actual': actual},
        )


class MigrationFileMissingError(InternalError):
    def __init__(self, message: str, *, migration_name: str | None = None) -> None:
        self.migration_name = migration_name
        super().__init__(message, details={'migration': migration_name} if migration_name else None)


class AdvisoryLockTimeoutError(DeadlineExceededError):
    def __init__(self, *, lock_id: int, timeout: float) -> None:
        super().__init__(
            f"Impossible d'obtenir le verrou consultatif {lock_id} en {timeout:.0f}s",
            retry_after=None,
            details={'lock_id': lock_id, 'timeout_seconds': timeout},
        )


# ========== Queue consumers ==========


class UnrecoverableMessageError(DomainError):
    """Message can never be processed (unknown schema major, malformed body): dead-letter now"""
