from abc import ABC, abstractmethod
from typing import Optional

from uuid_utils import UUID

from src.service.ticket_generation.domain.entity.generation_job_entity import GenerationJob
from src.service.ticket_generation.domain.enum.generation_job_state import GenerationJobState


class IGenerationJobRepo(ABC):
    """generation_jobs access, bound to the unit-of-work connection"""

    @abstractmethod
    async def insert(self, *, job: GenerationJob) -> GenerationJob:
        pass

    @abstractmethod
    async def update(self, *, job: GenerationJob) -> GenerationJob:
        """Persist state, progress, attempts, last_error, queue ids and timestamps"""
        pass

    @abstractmethod
    async def find_by_id(self, *, job_id: UUID) -> Optional[GenerationJob]:
        pass

    @abstractmethod
    async def find_by_correlation_key(self, *, correlation_key: UUID) -> Optional[GenerationJob]:
        pass

    @abstractmethod
    async def lock_by_id(self, *, job_id: UUID) -> Optional[GenerationJob]:
        """SELECT ... FOR UPDATE; the row stays locked until the transaction ends"""
        pass

    @abstractmethod
    async def lock_by_correlation_key(self, *, correlation_key: UUID) -> Optional[GenerationJob]:
        """SELECT ... FOR UPDATE by correlation key"""
        pass

    @abstractmethod
    async def list_by_event(
        self,
        *,
        event_id: int,
        page: int,
        limit: int,
        state: Optional[GenerationJobState] = None,
    ) -> tuple[list[GenerationJob], int]:
        """
        Page of jobs for an event, newest first

        Returns:
            (jobs, total matching rows)
        """
        pass
