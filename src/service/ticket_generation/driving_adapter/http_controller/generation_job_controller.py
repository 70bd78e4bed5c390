from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from src.platform.config.core_setting import settings
from src.platform.context.call_context import CallContext
from src.platform.logging.loguru_io import Logger
from src.platform.types import UtilsUUID7
from src.service.ticket_generation.app.command.cancel_generation_job_use_case import (
    CancelGenerationJobUseCase,
)
from src.service.ticket_generation.app.command.submit_generation_job_use_case import (
    SubmitGenerationJobUseCase,
)
from src.service.ticket_generation.app.dto.generation_job_dto import GenerationTicketInput
from src.service.ticket_generation.app.query.get_generation_job_status_use_case import (
    GetGenerationJobStatusUseCase,
)
from src.service.ticket_generation.app.query.list_event_generation_jobs_use_case import (
    ListEventGenerationJobsUseCase,
)
from src.service.ticket_generation.domain.enum.generation_job_state import GenerationJobState
from src.service.ticket_generation.driving_adapter.http_controller.schema.generation_job_schema import (
    GenerationJobCreateRequest,
    GenerationJobCreatedResponse,
    GenerationJobListResponse,
    GenerationJobResponse,
    GenerationJobStatusResponse,
)


router = APIRouter()


def _request_ctx(operation: str) -> CallContext:
    return CallContext.with_timeout(settings.REQUEST_TIMEOUT, operation=operation)


@router.post('/tickets/jobs', status_code=status.HTTP_201_CREATED)
@Logger.io
async def submit_generation_job(
    request: GenerationJobCreateRequest,
    use_case: SubmitGenerationJobUseCase = Depends(SubmitGenerationJobUseCase.depends),
) -> GenerationJobCreatedResponse:
    result = await use_case.submit(
        event_id=request.event_id,
        organizer_id=request.organizer_id,
        tickets=[
            GenerationTicketInput(
                guest_id=ticket.guest_id,
                ticket_type_id=ticket.ticket_type_id,
                guest_name=ticket.guest_name,
                guest_email=ticket.guest_email,
                guest_phone=ticket.guest_phone,
                event_title=ticket.event_title,
                event_date=ticket.event_date,
                event_location=ticket.event_location,
                price=ticket.price,
                currency=ticket.currency,
            )
            for ticket in request.tickets
        ],
        ctx=_request_ctx('submit generation job'),
    )
    return GenerationJobCreatedResponse(
        job_id=result.job_id, queue_job_ids=result.queue_job_ids, batch_count=result.batch_count
    )


@router.get('/tickets/generation/{job_id}')
@Logger.io
async def get_generation_job_status(
    job_id: UtilsUUID7,
    use_case: GetGenerationJobStatusUseCase = Depends(GetGenerationJobStatusUseCase.depends),
) -> GenerationJobStatusResponse:
    job_status = await use_case.get_status(job_id=job_id, ctx=_request_ctx('get job status'))
    return GenerationJobStatusResponse.from_status(job_status)


@router.post('/tickets/generation/{job_id}/cancel')
@Logger.io
async def cancel_generation_job(
    job_id: UtilsUUID7,
    use_case: CancelGenerationJobUseCase = Depends(CancelGenerationJobUseCase.depends),
) -> GenerationJobResponse:
    job = await use_case.cancel(job_id=job_id, ctx=_request_ctx('cancel generation job'))
    return GenerationJobResponse.from_entity(job)


@router.get('/events/{event_id}/tickets/generation')
@Logger.io
async def list_event_generation_jobs(
    event_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    job_status: Optional[GenerationJobState] = Query(default=None, alias='status'),
    use_case: ListEventGenerationJobsUseCase = Depends(ListEventGenerationJobsUseCase.depends),
) -> GenerationJobListResponse:
    result = await use_case.list_jobs(
        event_id=event_id,
        page=page,
        limit=limit,
        state=job_status,
        ctx=_request_ctx('list generation jobs'),
    )
    return GenerationJobListResponse.from_page(result)
