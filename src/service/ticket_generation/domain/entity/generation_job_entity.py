from datetime import datetime, timezone
from typing import List, Optional

import attrs
import uuid_utils
from uuid_utils import UUID

from src.platform.exception.exceptions import (
    DomainError,
    InternalError,
    PreconditionFailedError,
)
from src.platform.logging.loguru_io import Logger
from src.service.ticket_generation.domain.enum.generation_job_state import GenerationJobState


@attrs.define
class GenerationJob:
    """
    One organizer request to render `requested_count` tickets

    Invariants:
    - 0 <= progress <= requested_count
    - completed / failed / cancelled are terminal: no transition out
    """

    id: UUID
    event_id: int
    organizer_id: int
    requested_count: int
    correlation_key: UUID
    state: GenerationJobState = GenerationJobState.PENDING
    progress: int = 0
    attempts: int = 0
    last_error: Optional[str] = None
    queue_job_ids: List[str] = attrs.field(factory=list)
    event_title: Optional[str] = None
    event_date: Optional[str] = None
    event_location: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    @Logger.io
    def create(
        cls,
        *,
        event_id: int,
        organizer_id: int,
        requested_count: int,
        event_title: Optional[str] = None,
        event_date: Optional[str] = None,
        event_location: Optional[str] = None,
    ) -> 'GenerationJob':
        if requested_count < 1:
            raise DomainError('requested_count doit être >= 1')

        now = datetime.now(timezone.utc)
        return cls(
            id=uuid_utils.uuid7(),
            correlation_key=uuid_utils.uuid7(),
            event_id=event_id,
            organizer_id=organizer_id,
            requested_count=requested_count,
            event_title=event_title,
            event_date=event_date,
            event_location=event_location,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def is_fully_processed(self) -> bool:
        return self.progress == self.requested_count

    def with_queue_job_ids(self, queue_job_ids: List[str]) -> 'GenerationJob':
        return attrs.evolve(self, queue_job_ids=list(queue_job_ids))

    @Logger.io
    def record_batch(
        self, *, changed: int, error: Optional[str] = None, now: Optional[datetime] = None
    ) -> 'GenerationJob':
        """
        Account for one reconciled result message

        Progress grows by the ticket rows actually changed, never by the results
        the message declares, so a replayed message adds nothing.
        """
        if self.is_terminal:
            raise PreconditionFailedError(f'Job {self.id} déjà terminé ({self.state})')
        if changed < 0:
            raise InternalError('changed doit être >= 0')

        progress = self.progress + changed
        if progress > self.requested_count:
            raise InternalError(
                f'Progression {progress} > {self.requested_count} pour le job {self.id}'
            )

        now = now or datetime.now(timezone.utc)
        state = self.state
        started_at = self.started_at
        if changed and state is GenerationJobState.PENDING:
            state = GenerationJobState.PROCESSING
            started_at = now

        return attrs.evolve(
            self,
            state=state,
            progress=progress,
            attempts=self.attempts + 1,
            last_error=self.last_error or error,
            started_at=started_at,
            updated_at=now,
        )

    @Logger.io
    def finish(self, *, has_failed_tickets: bool, now: Optional[datetime] = None) -> 'GenerationJob':
        if self.is_terminal:
            raise PreconditionFailedError(f'Job {self.id} déjà terminé ({self.state})')
        if not self.is_fully_processed:
            raise InternalError(f'Job {self.id} incomplet: {self.progress}/{self.requested_count}')

        now = now or datetime.now(timezone.utc)
        return attrs.evolve(
            self,
            state=GenerationJobState.FAILED if has_failed_tickets else GenerationJobState.COMPLETED,
            finished_at=now,
            updated_at=now,
        )

    @Logger.io
    def cancel(self, *, now: Optional[datetime] = None) -> 'GenerationJob':
        if self.is_terminal:
            raise PreconditionFailedError(
                f"Impossible d'annuler un job à l'état {self.state}",
                details={'job_id': str(self.id), 'state': self.state.value},
            )

        now = now or datetime.now(timezone.utc)
        return attrs.evolve(
            self, state=GenerationJobState.CANCELLED, finished_at=now, updated_at=now
        )

    @Logger.io
    def mark_failed(self, *, reason: str, now: Optional[datetime] = None) -> 'GenerationJob':
        """Result delivery exhausted its retries"""
        if self.is_terminal:
            raise PreconditionFailedError(f'Job {self.id} déjà terminé ({self.state})')

        now = now or datetime.now(timezone.utc)
        return attrs.evolve(
            self,
            state=GenerationJobState.FAILED,
            last_error=reason,
            finished_at=now,
            updated_at=now,
        )
