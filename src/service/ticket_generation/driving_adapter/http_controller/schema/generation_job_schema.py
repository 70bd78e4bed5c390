from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from src.platform.types import UtilsUUID7
from src.service.ticket_generation.app.dto.generation_job_dto import (
    GenerationJobPage,
    GenerationJobStatus,
)
from src.service.ticket_generation.domain.entity.generation_job_entity import GenerationJob


class GenerationTicketRequest(BaseModel):
    guest_id: int
    ticket_type_id: int
    guest_name: str = Field(min_length=1, max_length=255)
    guest_email: str = Field(min_length=3, max_length=255)
    guest_phone: Optional[str] = Field(default=None, max_length=32)
    event_title: str = Field(min_length=1, max_length=255)
    event_date: str = Field(min_length=1, max_length=64)
    event_location: str = Field(min_length=1, max_length=255)
    price: Decimal = Field(default=Decimal('0'), ge=0)
    currency: Optional[str] = Field(default=None, pattern=r'^[A-Za-z]{3}$')


class GenerationJobCreateRequest(BaseModel):
    event_id: int
    organizer_id: int
    tickets: List[GenerationTicketRequest] = Field(min_length=1)

    class Config:
        json_schema_extra = {
            'example': {
                'event_id': 1,
                'organizer_id': 10,
                'tickets': [
                    {
                        'guest_id': 100,
                        'ticket_type_id': 1,
                        'guest_name': 'Alice Martin',
                        'guest_email': 'alice@example.com',
                        'event_title': 'Gala 2025',
                        'event_date': '2025-06-21T20:00:00Z',
                        'event_location': 'Paris',
                    }
                ],
            }
        }


class GenerationJobCreatedResponse(BaseModel):
    job_id: UtilsUUID7
    queue_job_ids: List[str]
    batch_count: int


class GenerationJobResponse(BaseModel):
    id: UtilsUUID7
    event_id: int
    organizer_id: int
    requested_count: int
    state: str
    progress: int
    attempts: int
    last_error: Optional[str] = None
    correlation_key: UtilsUUID7
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, job: GenerationJob) -> 'GenerationJobResponse':
        return cls(
            id=job.id,
            event_id=job.event_id,
            organizer_id=job.organizer_id,
            requested_count=job.requested_count,
            state=job.state.value,
            progress=job.progress,
            attempts=job.attempts,
            last_error=job.last_error,
            correlation_key=job.correlation_key,
            created_at=job.created_at,
            started_at=job.started_at,
            finished_at=job.finished_at,
        )


class BatchStatusResponse(BaseModel):
    batch_index: int
    queue_job_id: str
    state: str
    attempts: int
    last_error: Optional[str] = None


class TicketsSummaryResponse(BaseModel):
    rendered: int
    pending: int
    failed: int


class GenerationJobStatusResponse(BaseModel):
    job: GenerationJobResponse
    per_batch: List[BatchStatusResponse]
    tickets_summary: TicketsSummaryResponse
    queue_state: str

    @classmethod
    def from_status(cls, status: GenerationJobStatus) -> 'GenerationJobStatusResponse':
        return cls(
            job=GenerationJobResponse.from_entity(status.job),
            per_batch=[
                BatchStatusResponse(
                    batch_index=batch.batch_index,
                    queue_job_id=batch.queue_job_id,
                    state=batch.state,
                    attempts=batch.attempts,
                    last_error=batch.last_error,
                )
                for batch in status.per_batch
            ],
            tickets_summary=TicketsSummaryResponse(
                rendered=status.tickets_summary.rendered,
                pending=status.tickets_summary.pending,
                failed=status.tickets_summary.failed,
            ),
            queue_state=status.queue_state.value,
        )


class GenerationJobListResponse(BaseModel):
    items: List[GenerationJobResponse]
    total: int
    page: int
    limit: int

    @classmethod
    def from_page(cls, page: GenerationJobPage) -> 'GenerationJobListResponse':
        return cls(
            items=[GenerationJobResponse.from_entity(job) for job in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
        )
