from typing import List, Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from uuid_utils import UUID

from src.platform.config.di import Container
from src.platform.context.call_context import CallContext
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import (
    DeadlineExceededError,
    DependencyUnavailableError,
    NotFoundError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.message_queue.queue_job import QueueJob
from src.service.ticket_generation.app.dto.generation_job_dto import (
    BatchStatus,
    GenerationJobStatus,
    QueueState,
)
from src.service.ticket_generation.app.interface.i_render_request_publisher import (
    IRenderRequestPublisher,
)


UNKNOWN_BATCH_STATE = 'unknown'


class GetGenerationJobStatusUseCase:
    """
    Job row + ticket summary from the store, per-batch state from the queue

    The queue is best effort: when it cannot be reached the job is still
    returned with queue_state `unknown`.
    """

    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        render_request_publisher: IRenderRequestPublisher,
    ) -> None:
        self.uow_factory = uow_factory
        self.render_request_publisher = render_request_publisher

    @classmethod
    @inject
    def depends(
        cls,
        uow_factory: UnitOfWorkFactory = Depends(Provide[Container.uow_factory]),
        render_request_publisher: IRenderRequestPublisher = Depends(
            Provide[Container.render_request_publisher]
        ),
    ) -> Self:
        return cls(uow_factory=uow_factory, render_request_publisher=render_request_publisher)

    @staticmethod
    def _batch_status(index: int, queue_job_id: str, queue_job: Optional[QueueJob]) -> BatchStatus:
        if queue_job is None:
            return BatchStatus(
                batch_index=index, queue_job_id=queue_job_id, state=UNKNOWN_BATCH_STATE
            )
        return BatchStatus(
            batch_index=index,
            queue_job_id=queue_job_id,
            state=queue_job.state.value,
            attempts=queue_job.attempts_made,
            last_error=queue_job.failed_reason,
        )

    @Logger.io
    async def get_status(self, *, job_id: UUID, ctx: CallContext) -> GenerationJobStatus:
        async with self.uow_factory(ctx=ctx) as uow:
            job = await uow.generation_job_repo.find_by_id(job_id=job_id)
            if not job:
                raise NotFoundError(f'Job de génération {job_id} introuvable')
            summary = await uow.ticket_repo.summarize_by_job(job_id=job.id)

        queue_state = QueueState.AVAILABLE
        try:
            queue_jobs = await self.render_request_publisher.batch_states(
                queue_job_ids=job.queue_job_ids, ctx=ctx
            )
        except (DependencyUnavailableError, DeadlineExceededError) as e:
            Logger.base.warning(f'⚠️ [STATUS] Queue unavailable for job {job.id}: {e.message}')
            queue_state = QueueState.UNKNOWN
            queue_jobs = [None] * len(job.queue_job_ids)

        per_batch: List[BatchStatus] = [
            self._batch_status(index, queue_job_id, queue_job)
            for index, (queue_job_id, queue_job) in enumerate(zip(job.queue_job_ids, queue_jobs))
        ]
        return GenerationJobStatus(
            job=job, per_batch=per_batch, tickets_summary=summary, queue_state=queue_state
        )
