from uuid_utils import UUID

from src.platform.context.call_context import CallContext
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import ErrorCode
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.queue_metrics import metrics
from src.platform.types.result import Err, Ok, Result
from src.service.ticket_generation.domain.entity.generation_job_entity import GenerationJob


class MarkGenerationJobFailedUseCase:
    """A render result exhausted its retries: fail the job so it does not sit in processing forever"""

    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self.uow_factory = uow_factory

    @Logger.io
    async def mark_failed(
        self, *, correlation_key: UUID, reason: str, ctx: CallContext
    ) -> Result[GenerationJob]:
        async with self.uow_factory(ctx=ctx) as uow:
            job = await uow.generation_job_repo.lock_by_correlation_key(
                correlation_key=correlation_key
            )
            if not job:
                return Err(
                    ErrorCode.NOT_FOUND,
                    'Job de génération introuvable',
                    details={'correlation_key': str(correlation_key)},
                )
            if job.is_terminal:
                return Ok(job)

            job = await uow.generation_job_repo.update(job=job.mark_failed(reason=reason))
            await uow.commit()

        metrics.jobs_finished.labels(state=job.state.value).inc()
        Logger.base.warning(f'💀 [DEAD-LETTER] Job {job.id} marked failed: {reason}')
        return Ok(job)
