from enum import StrEnum
from typing import Any, Optional, Self

import attrs

from src.platform.exception.exceptions import DomainError


MAX_PRIORITY = 1000


class BackoffKind(StrEnum):
    EXPONENTIAL = 'exponential'
    FIXED = 'fixed'


@attrs.frozen
class BackoffPolicy:
    kind: BackoffKind = attrs.field(default=BackoffKind.EXPONENTIAL, converter=BackoffKind)
    base_delay_ms: int = 3000
    cap_ms: int = 30000

    def __attrs_post_init__(self) -> None:
        if self.base_delay_ms < 0 or self.cap_ms < 0:
            raise DomainError('backoff delays must be >= 0')
        if self.cap_ms < self.base_delay_ms:
            raise DomainError('backoff cap must be >= base delay')

    def delay_ms(self, attempt: int) -> int:
        """Delay before retrying after the given (1-based) failed attempt"""
        attempt = max(attempt, 1)
        if self.kind is BackoffKind.FIXED:
            return self.base_delay_ms
        return min(self.cap_ms, self.base_delay_ms * 2 ** (attempt - 1))

    def to_dict(self) -> dict[str, Any]:
        return {'type': self.kind.value, 'delay': self.base_delay_ms, 'cap': self.cap_ms}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            kind=BackoffKind(data.get('type', BackoffKind.EXPONENTIAL)),
            base_delay_ms=int(data.get('delay', 3000)),
            cap_ms=int(data.get('cap', 30000)),
        )


@attrs.frozen
class JobOptions:
    """
    Delivery options attached to a queued job.

    - priority: lower value is delivered first; equal priorities are FIFO
    - attempts: total deliveries before dead-lettering (>= 1)
    - remove_on_complete / remove_on_fail: number of finished jobs retained, None keeps all
    """

    priority: int = 0
    attempts: int = 1
    backoff: BackoffPolicy = attrs.field(factory=BackoffPolicy)
    remove_on_complete: Optional[int] = None
    remove_on_fail: Optional[int] = None
    delay_ms: int = 0

    def __attrs_post_init__(self) -> None:
        if not 0 <= self.priority <= MAX_PRIORITY:
            raise DomainError(f'priority must be between 0 and {MAX_PRIORITY}')
        if self.attempts < 1:
            raise DomainError('attempts must be >= 1')
        if self.delay_ms < 0:
            raise DomainError('delay_ms must be >= 0')
        for retention in (self.remove_on_complete, self.remove_on_fail):
            if retention is not None and retention < 0:
                raise DomainError('retention counts must be >= 0')

    def to_dict(self) -> dict[str, Any]:
        return {
            'priority': self.priority,
            'attempts': self.attempts,
            'backoff': self.backoff.to_dict(),
            'removeOnComplete': self.remove_on_complete,
            'removeOnFail': self.remove_on_fail,
            'delay': self.delay_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            priority=int(data.get('priority', 0)),
            attempts=int(data.get('attempts', 1)),
            backoff=BackoffPolicy.from_dict(data.get('backoff') or {}),
            remove_on_complete=data.get('removeOnComplete'),
            remove_on_fail=data.get('removeOnFail'),
            delay_ms=int(data.get('delay', 0)),
        )
