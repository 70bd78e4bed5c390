from abc import ABC, abstractmethod
from typing import Optional

from src.platform.context.call_context import CallContext
from src.platform.message_queue.queue_job import QueueJob
from src.service.ticket_generation.app.dto.render_message import RenderRequestMessage


class IRenderRequestPublisher(ABC):
    """Outbound render work (ticket_generation_queue)"""

    @abstractmethod
    async def publish(self, *, message: RenderRequestMessage, ctx: CallContext) -> str:
        """
        Enqueue one batch

        Returns:
            The queue job id
        """
        pass

    @abstractmethod
    async def withdraw(self, *, queue_job_id: str, ctx: CallContext) -> bool:
        """Remove a batch that was enqueued by a submit that is rolling back"""
        pass

    @abstractmethod
    async def batch_states(
        self, *, queue_job_ids: list[str], ctx: CallContext
    ) -> list[Optional[QueueJob]]:
        """Queue snapshot per id, in order; None when the queue no longer knows the job"""
        pass
