"""
Render Request Publisher Implementation

Concrete adapter that implements IRenderRequestPublisher on the shared queue
client. Owns the delivery policy of ticket_generation_queue.
"""

from typing import Optional

from src.platform.context.call_context import CallContext
from src.platform.logging.loguru_io import Logger
from src.platform.message_queue.i_queue_client import IQueueClient
from src.platform.message_queue.job_options import BackoffPolicy, JobOptions
from src.platform.message_queue.queue_job import QueueJob
from src.platform.message_queue.queue_name import QueueName
from src.service.ticket_generation.app.dto.render_message import RenderRequestMessage
from src.service.ticket_generation.app.interface.i_render_request_publisher import (
    IRenderRequestPublisher,
)


RENDER_JOB_NAME = 'render_tickets'

RENDER_JOB_OPTIONS = JobOptions(
    priority=1,
    attempts=5,
    backoff=BackoffPolicy(base_delay_ms=3000, cap_ms=30000),
    remove_on_complete=100,
    remove_on_fail=50,
)


class RenderRequestPublisherImpl(IRenderRequestPublisher):
    def __init__(
        self,
        *,
        queue_client: IQueueClient,
        queue_name: str = QueueName.TICKET_GENERATION,
        opts: JobOptions = RENDER_JOB_OPTIONS,
    ) -> None:
        self.queue_client = queue_client
        self.queue_name = queue_name
        self.opts = opts

    @Logger.io
    async def publish(self, *, message: RenderRequestMessage, ctx: CallContext) -> str:
        return await self.queue_client.enqueue(
            queue_name=self.queue_name,
            name=RENDER_JOB_NAME,
            payload=message.to_payload(),
            opts=self.opts,
            ctx=ctx,
        )

    @Logger.io
    async def withdraw(self, *, queue_job_id: str, ctx: CallContext) -> bool:
        return await self.queue_client.remove(
            queue_name=self.queue_name, queue_job_id=queue_job_id, ctx=ctx
        )

    async def batch_states(
        self, *, queue_job_ids: list[str], ctx: CallContext
    ) -> list[Optional[QueueJob]]:
        return [
            await self.queue_client.get(
                queue_name=self.queue_name, queue_job_id=queue_job_id, ctx=ctx
            )
            for queue_job_id in queue_job_ids
        ]
