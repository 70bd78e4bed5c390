"""
Renderer queue messages

- RenderRequestMessage: ticket_generation_queue, one per batch
- RenderResultMessage: ticket_generation_result_queue, echoed back with the correlation key
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from src.platform.message_queue.message_schema import VersionedMessage
from src.platform.message_queue.queue_name import QueueName
from src.platform.types import UtilsUUID7


class RenderTicketPayload(BaseModel):
    ticket_code: str
    guest_id: int
    ticket_type_id: int
    guest_name: str
    guest_email: str
    guest_phone: Optional[str] = None
    event_title: str
    event_date: str
    event_location: str
    qr_payload: str
    price: str
    currency: str


class RenderRequestMessage(VersionedMessage):
    job_id: UtilsUUID7
    correlation_key: UtilsUUID7
    event_id: int
    batch_index: int
    batch_count: int
    tickets: List[RenderTicketPayload]
    reply_queue: str = QueueName.TICKET_GENERATION_RESULT.value


class RenderResultEntry(BaseModel):
    ticket_code: str = Field(min_length=1)
    state: Literal['rendered', 'failed']
    artifact_url: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    qr_payload: Optional[str] = None


class RenderResultMessage(VersionedMessage):
    correlation_key: UtilsUUID7
    batch_index: int = 0
    results: List[RenderResultEntry] = Field(default_factory=list)
    batch_finished: bool = True
