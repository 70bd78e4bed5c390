from enum import StrEnum


class GenerationJobState(StrEnum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'
    CANCELLED = 'cancelled'

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_JOB_STATES


TERMINAL_JOB_STATES = frozenset(
    {GenerationJobState.COMPLETED, GenerationJobState.FAILED, GenerationJobState.CANCELLED}
)
