from abc import ABC, abstractmethod
from typing import Sequence

from uuid_utils import UUID

from src.service.ticket_generation.domain.entity.ticket_entity import Ticket
from src.service.ticket_generation.domain.value_object.render_result import (
    RenderResultItem,
    TicketChange,
    TicketsSummary,
)


class ITicketRepo(ABC):
    @abstractmethod
    async def insert_many(self, *, tickets: Sequence[Ticket]) -> None:
        """Insert pending tickets; a live (event, guest, type) duplicate raises ConflictError"""
        pass

    @abstractmethod
    async def apply_results(
        self, *, job_id: UUID, results: Sequence[RenderResultItem]
    ) -> list[TicketChange]:
        """
        Move pending tickets of the job to rendered / failed

        Only rows still `pending` change, so a replayed result changes nothing.

        Returns:
            The rows actually changed
        """
        pass

    @abstractmethod
    async def summarize_by_job(self, *, job_id: UUID) -> TicketsSummary:
        pass

    @abstractmethod
    async def count_failed(self, *, job_id: UUID) -> int:
        pass

    @abstractmethod
    async def list_rendered_by_job(self, *, job_id: UUID) -> list[Ticket]:
        pass

    @abstractmethod
    async def fail_pending_for_cancel(self, *, job_id: UUID) -> int:
        """Pending tickets become failed with error code `cancelled`; returns rows changed"""
        pass

    @abstractmethod
    async def void_by_job(self, *, job_id: UUID) -> int:
        """Set voided_at on every ticket of the job, freeing the (event, guest, type) slot"""
        pass
