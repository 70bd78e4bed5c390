"""
Render Result MQ Consumer

Pulls ticket_generation_result_queue and hands each message to the
reconciler. A single worker is enough: the row lock on the job serialises
results per job and the renderer, not the reconciler, is the bottleneck.

Message outcome:
- reconciled, already terminal or unknown job: completed (the latter two are no-ops)
- database / deadline failure: raised, the queue retries with backoff
- unreadable message: dead-lettered at once
- dead-lettered: the owning job is marked failed with the last error
"""

from typing import Optional

from uuid_utils import UUID

from src.platform.config.core_setting import settings
from src.platform.context.call_context import CallContext
from src.platform.exception.exceptions import CustomBaseError
from src.platform.logging.loguru_io import Logger
from src.platform.message_queue.i_queue_client import IQueueClient
from src.platform.message_queue.message_schema import decode_message
from src.platform.message_queue.queue_job import ReservedJob
from src.platform.message_queue.queue_name import QueueName
from src.platform.message_queue.queue_worker import QueueWorker
from src.platform.types.result import Err, Result
from src.service.ticket_generation.app.command.mark_generation_job_failed_use_case import (
    MarkGenerationJobFailedUseCase,
)
from src.service.ticket_generation.app.command.reconcile_render_result_use_case import (
    ReconcileRenderResultUseCase,
)
from src.service.ticket_generation.app.dto.render_message import RenderResultMessage


def _correlation_key(data: dict) -> Optional[UUID]:
    try:
        return UUID(str(data['correlation_key']))
    except (KeyError, ValueError):
        return None


class RenderResultMqConsumer:
    def __init__(
        self,
        *,
        queue_client: IQueueClient,
        reconcile_use_case: ReconcileRenderResultUseCase,
        mark_failed_use_case: MarkGenerationJobFailedUseCase,
        concurrency: int = settings.RENDER_RESULT_CONSUMER_CONCURRENCY,
    ) -> None:
        self.queue_client = queue_client
        self.reconcile_use_case = reconcile_use_case
        self.mark_failed_use_case = mark_failed_use_case
        self.concurrency = concurrency

    async def handle(self, job: ReservedJob, ctx: CallContext) -> Result:
        message = decode_message(RenderResultMessage, job.data)
        return await self.reconcile_use_case.reconcile(message=message, ctx=ctx)

    async def on_dead_letter(self, job: ReservedJob, reason: str) -> None:
        correlation_key = _correlation_key(job.data)
        if correlation_key is None:
            Logger.base.error(
                f'💀 [RENDER-RESULT] Dead-lettered {job.id} has no usable correlation key: {reason}'
            )
            return

        ctx = CallContext.with_timeout(settings.HANDLER_TIMEOUT, operation='dead-letter render result')
        try:
            result = await self.mark_failed_use_case.mark_failed(
                correlation_key=correlation_key, reason=reason, ctx=ctx
            )
        except CustomBaseError as e:
            Logger.base.error(
                f'❌ [RENDER-RESULT] Could not fail job for {correlation_key}: {e.message}'
            )
            return

        if isinstance(result, Err):
            Logger.base.warning(
                f'⚠️ [RENDER-RESULT] Dead-lettered {job.id}: {result.message} ({correlation_key})'
            )

    def build_worker(self) -> QueueWorker:
        return self.queue_client.subscribe(
            queue_name=QueueName.TICKET_GENERATION_RESULT,
            handler=self.handle,
            concurrency=self.concurrency,
            on_dead_letter=self.on_dead_letter,
        )
