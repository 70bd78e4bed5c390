from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from uuid_utils import UUID

from src.platform.config.di import Container
from src.platform.context.call_context import CallContext
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import NotFoundError
from src.platform.logging.loguru_io import Logger
from src.service.ticket_generation.domain.entity.generation_job_entity import GenerationJob


class CancelGenerationJobUseCase:
    """
    Cancel a job that has not reached a terminal state

    Pending tickets become failed (error code `cancelled`) and every ticket of
    the job is voided, freeing the (event, guest, ticket type) slot. Results
    arriving later find a terminal job and change nothing.
    """

    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self.uow_factory = uow_factory

    @classmethod
    @inject
    def depends(
        cls, uow_factory: UnitOfWorkFactory = Depends(Provide[Container.uow_factory])
    ) -> Self:
        return cls(uow_factory=uow_factory)

    @Logger.io
    async def cancel(self, *, job_id: UUID, ctx: CallContext) -> GenerationJob:
        async with self.uow_factory(ctx=ctx) as uow:
            job = await uow.generation_job_repo.lock_by_id(job_id=job_id)
            if not job:
                raise NotFoundError(f'Job de génération {job_id} introuvable')

            # Raises PreconditionFailedError on terminal jobs
            job = job.cancel()

            failed = await uow.ticket_repo.fail_pending_for_cancel(job_id=job.id)
            voided = await uow.ticket_repo.void_by_job(job_id=job.id)
            job = await uow.generation_job_repo.update(job=job)
            await uow.commit()

        Logger.base.info(
            f'🛑 [CANCEL] Job {job.id} cancelled: {failed} pending tickets failed, {voided} voided'
        )
        return job
