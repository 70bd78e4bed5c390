"""
Call Context - explicit per-call deadlines

Every repository query, queue operation and outbound HTTP call receives a
CallContext. The context carries an absolute deadline (monotonic clock); each
operation bounds itself by min(its default timeout, time left on the context).

Usage:
    ctx = CallContext.with_timeout(10)
    with ctx.scope(settings.DB_QUERY_TIMEOUT, operation='load job'):
        row = await conn.fetchrow(...)
"""

from collections.abc import Iterator
from contextlib import contextmanager
import time
from typing import Optional, Self

import anyio
import attrs

from src.platform.exception.exceptions import DeadlineExceededError


@attrs.frozen
class CallContext:
    deadline: Optional[float] = None  # time.monotonic() value, None = unbounded
    operation: str = ''

    @classmethod
    def background(cls, operation: str = '') -> Self:
        """Context without an overall deadline; each operation still uses its default timeout."""
        return cls(deadline=None, operation=operation)

    @classmethod
    def with_timeout(cls, seconds: float, operation: str = '') -> Self:
        return cls(deadline=time.monotonic() + seconds, operation=operation)

    def child(self, seconds: float) -> 'CallContext':
        """Derive a context that never outlives this one."""
        candidate = time.monotonic() + seconds
        deadline = candidate if self.deadline is None else min(self.deadline, candidate)
        return CallContext(deadline=deadline, operation=self.operation)

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def timeout_for(self, default: float, *, operation: str = '') -> float:
        """Timeout to hand to a driver call, raising when the deadline has already passed."""
        remaining = self.remaining()
        if remaining is None:
            return default
        if remaining <= 0:
            raise DeadlineExceededError(
                f'Délai dépassé avant {operation or self.operation or "opération"}'
            )
        return min(default, remaining)

    @contextmanager
    def scope(self, default: float, *, operation: str = '') -> Iterator[None]:
        """Cancel the enclosed awaits when the timeout elapses and raise DeadlineExceededError."""
        timeout = self.timeout_for(default, operation=operation)
        try:
            with anyio.fail_after(timeout):
                yield
        except TimeoutError as e:
            raise DeadlineExceededError(
                f'Délai de {timeout:.1f}s dépassé pendant {operation or self.operation or "opération"}'
            ) from e
