from typing import Generic, Sequence, TypeVar

import attrs

from src.platform.exception.exceptions import DomainError


T = TypeVar('T')


@attrs.frozen
class TicketBatch(Generic[T]):
    index: int
    items: tuple[T, ...]

    def __len__(self) -> int:
        return len(self.items)


def plan_batches(items: Sequence[T], *, batch_size: int) -> list[TicketBatch[T]]:
    """Split items, in order, into consecutive batches of at most `batch_size`"""
    if batch_size < 1:
        raise DomainError('batch_size doit être >= 1')

    return [
        TicketBatch(index=index, items=tuple(items[start : start + batch_size]))
        for index, start in enumerate(range(0, len(items), batch_size))
    ]
