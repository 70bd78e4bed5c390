from enum import StrEnum
from typing import Any, Optional

import attrs

from src.platform.message_queue.job_options import JobOptions


class QueueJobState(StrEnum):
    WAITING = 'waiting'
    DELAYED = 'delayed'  # Scheduled or waiting for a retry backoff
    ACTIVE = 'active'
    COMPLETED = 'completed'
    FAILED = 'failed'  # Attempts exhausted: dead-lettered


class FailureOutcome(StrEnum):
    RETRYING = 'retrying'
    DEAD_LETTERED = 'dead_lettered'
    LOST = 'lost'  # Lease expired or job removed before the failure was recorded


@attrs.frozen
class QueueJob:
    """Snapshot of a queued job as returned by IQueueClient.get"""

    id: str
    name: str
    state: QueueJobState
    data: dict[str, Any]
    attempts_made: int = 0
    progress: int = 0
    failed_reason: Optional[str] = None
    processed_on: Optional[int] = None  # epoch ms
    finished_on: Optional[int] = None  # epoch ms

    @property
    def is_dead_lettered(self) -> bool:
        return self.state is QueueJobState.FAILED


@attrs.frozen
class ReservedJob:
    """A job leased to a worker for one delivery attempt"""

    id: str
    queue_name: str
    name: str
    data: dict[str, Any]
    attempts_made: int
    opts: JobOptions

    @property
    def attempt(self) -> int:
        return self.attempts_made + 1
