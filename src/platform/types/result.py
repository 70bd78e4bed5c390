"""
Tagged result envelope for module boundaries.

Consumers and cross-service ports return `Ok(value)` or `Err(code, message)`
instead of raising for expected outcomes such as "job not found" or
"message already applied". Exceptions stay reserved for infrastructure failures.
"""

from typing import Any, Generic, TypeAlias, TypeVar

import attrs

from src.platform.exception.exceptions import ErrorCode


T = TypeVar('T')


@attrs.frozen
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True


@attrs.frozen
class Err:
    code: ErrorCode
    message: str
    details: dict[str, Any] = attrs.field(factory=dict)

    @property
    def is_ok(self) -> bool:
        return False


Result: TypeAlias = Ok[T] | Err
