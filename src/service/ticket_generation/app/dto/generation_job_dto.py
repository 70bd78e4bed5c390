from decimal import Decimal
from enum import StrEnum
from typing import List, Optional

import attrs
from uuid_utils import UUID

from src.service.ticket_generation.domain.entity.generation_job_entity import GenerationJob
from src.service.ticket_generation.domain.enum.generation_job_state import GenerationJobState
from src.service.ticket_generation.domain.value_object.render_result import TicketsSummary


@attrs.frozen
class GenerationTicketInput:
    guest_id: int
    ticket_type_id: int
    guest_name: str
    guest_email: str
    event_title: str
    event_date: str
    event_location: str
    guest_phone: Optional[str] = None
    price: Decimal = Decimal('0')
    currency: Optional[str] = None


@attrs.frozen
class SubmitGenerationJobResult:
    job_id: UUID
    queue_job_ids: List[str]
    batch_count: int


class QueueState(StrEnum):
    AVAILABLE = 'available'
    UNKNOWN = 'unknown'


@attrs.frozen
class BatchStatus:
    batch_index: int
    queue_job_id: str
    state: str
    attempts: int = 0
    last_error: Optional[str] = None


@attrs.frozen
class GenerationJobStatus:
    job: GenerationJob
    per_batch: List[BatchStatus]
    tickets_summary: TicketsSummary
    queue_state: QueueState


@attrs.frozen
class GenerationJobPage:
    items: List[GenerationJob]
    total: int
    page: int
    limit: int


@attrs.frozen
class ReconcileOutcome:
    job_id: UUID
    state: GenerationJobState
    rendered: int = 0
    failed: int = 0
    notified: bool = False
    already_terminal: bool = False

    @property
    def changed(self) -> int:
        return self.rendered + self.failed
