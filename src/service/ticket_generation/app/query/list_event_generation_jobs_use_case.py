from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.context.call_context import CallContext
from src.platform.database.unit_of_work import UnitOfWorkFactory
from src.platform.exception.exceptions import DomainError
from src.platform.logging.loguru_io import Logger
from src.service.ticket_generation.app.dto.generation_job_dto import GenerationJobPage
from src.service.ticket_generation.domain.enum.generation_job_state import GenerationJobState


MAX_PAGE_SIZE = 100


class ListEventGenerationJobsUseCase:
    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self.uow_factory = uow_factory

    @classmethod
    @inject
    def depends(
        cls, uow_factory: UnitOfWorkFactory = Depends(Provide[Container.uow_factory])
    ) -> Self:
        return cls(uow_factory=uow_factory)

    @Logger.io
    async def list_jobs(
        self,
        *,
        event_id: int,
        page: int = 1,
        limit: int = 20,
        state: Optional[GenerationJobState] = None,
        ctx: CallContext,
    ) -> GenerationJobPage:
        if page < 1:
            raise DomainError('page doit être >= 1')
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise DomainError(f'limit doit être entre 1 et {MAX_PAGE_SIZE}')

        async with self.uow_factory(ctx=ctx) as uow:
            jobs, total = await uow.generation_job_repo.list_by_event(
                event_id=event_id, page=page, limit=limit, state=state
            )
        return GenerationJobPage(items=jobs, total=total, page=page, limit=limit)
