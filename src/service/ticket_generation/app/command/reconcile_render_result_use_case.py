"""
Reconcile Render Result Use Case

Applies one renderer response to its generation job. Idempotent by
construction:
- the job row is locked by correlation key for the whole transaction
- ticket rows only move out of `pending`, so a replay changes nothing
- progress grows by the rows actually changed, never by the declared results
- terminal jobs are left untouched

The notification port runs after commit and only for the delivery that moved
the job to `completed`; its failures are logged and never retry the message.
"""

from typing import List, Optional, Sequence

from src.platform.context.call_context import CallContext
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import ErrorCode
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.queue_metrics import metrics
from src.platform.types.result import Err, Ok, Result
from src.service.ticket_generation.app.dto.generation_job_dto import ReconcileOutcome
from src.service.ticket_generation.app.dto.render_message import RenderResultMessage
from src.service.ticket_generation.app.interface.i_generation_notifier import IGenerationNotifier
from src.service.ticket_generation.domain.entity.generation_job_entity import GenerationJob
from src.service.ticket_generation.domain.entity.ticket_entity import Ticket
from src.service.ticket_generation.domain.enum.generation_job_state import GenerationJobState
from src.service.ticket_generation.domain.enum.ticket_state import TicketState
from src.service.ticket_generation.domain.value_object.render_result import (
    RenderResultItem,
    TicketChange,
)


def _to_items(message: RenderResultMessage) -> List[RenderResultItem]:
    return [
        RenderResultItem(
            ticket_code=entry.ticket_code,
            state=TicketState(entry.state),
            artifact_url=entry.artifact_url,
            error=entry.error,
            error_code=entry.error_code,
            qr_payload=entry.qr_payload,
        )
        for entry in message.results
    ]


def _first_failure(
    items: Sequence[RenderResultItem], changes: Sequence[TicketChange]
) -> Optional[str]:
    changed_codes = {change.ticket_code for change in changes if change.state is TicketState.FAILED}
    for item in items:
        if item.ticket_code in changed_codes:
            return item.error or item.error_code or 'render failed'
    return None


class ReconcileRenderResultUseCase:
    def __init__(
        self, *, uow_factory: UnitOfWorkFactory, generation_notifier: IGenerationNotifier
    ) -> None:
        self.uow_factory = uow_factory
        self.generation_notifier = generation_notifier

    @Logger.io
    async def reconcile(
        self, *, message: RenderResultMessage, ctx: CallContext
    ) -> Result[ReconcileOutcome]:
        items = _to_items(message)
        rendered_tickets: List[Ticket] = []

        async with self.uow_factory(ctx=ctx) as uow:
            job = await uow.generation_job_repo.lock_by_correlation_key(
                correlation_key=message.correlation_key
            )
            if not job:
                Logger.base.warning(
                    f'⚠️ [RECONCILE] No job for correlation key {message.correlation_key}, dropping batch {message.batch_index}'
                )
                return Err(
                    ErrorCode.NOT_FOUND,
                    'Job de génération introuvable',
                    details={'correlation_key': str(message.correlation_key)},
                )

            if job.is_terminal:
                Logger.base.info(
                    f'🔁 [RECONCILE] Job {job.id} already {job.state}, ignoring batch {message.batch_index}'
                )
                return Ok(ReconcileOutcome(job_id=job.id, state=job.state, already_terminal=True))

            changes = await uow.ticket_repo.apply_results(job_id=job.id, results=items)
            rendered = sum(1 for change in changes if change.state is TicketState.RENDERED)
            failed = len(changes) - rendered

            job = job.record_batch(changed=len(changes), error=_first_failure(items, changes))
            if job.is_fully_processed:
                failed_total = await uow.ticket_repo.count_failed(job_id=job.id)
                job = job.finish(has_failed_tickets=failed_total > 0)
                if job.state is GenerationJobState.COMPLETED:
                    rendered_tickets = await uow.ticket_repo.list_rendered_by_job(job_id=job.id)

            job = await uow.generation_job_repo.update(job=job)
            await uow.commit()

        metrics.record_tickets(rendered=rendered, failed=failed)
        if job.is_terminal:
            metrics.jobs_finished.labels(state=job.state.value).inc()
        Logger.base.info(
            f'📥 [RECONCILE] Job {job.id} batch {message.batch_index}: +{len(changes)} '
            f'({rendered} rendered, {failed} failed) -> {job.progress}/{job.requested_count} {job.state}'
        )

        notified = False
        if job.state is GenerationJobState.COMPLETED:
            notified = await self._notify(job=job, tickets=rendered_tickets, ctx=ctx)

        return Ok(
            ReconcileOutcome(
                job_id=job.id, state=job.state, rendered=rendered, failed=failed, notified=notified
            )
        )

    async def _notify(self, *, job: GenerationJob, tickets: List[Ticket], ctx: CallContext) -> bool:
        try:
            result = await self.generation_notifier.notify_completed(job=job, tickets=tickets, ctx=ctx)
        except Exception:
            Logger.base.exception(f'❌ [RECONCILE] Notification hand-off crashed for job {job.id}')
            return False

        if isinstance(result, Err):
            Logger.base.error(
                f'❌ [RECONCILE] Notification hand-off failed for job {job.id}: {result.code} {result.message}'
            )
            return False
        return True
